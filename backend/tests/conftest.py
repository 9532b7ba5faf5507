"""Shared fixtures: a deterministic clock and repositories over a fresh SQLite file."""
import pytest

from chatrelay.database import Database
from chatrelay.repositories import SettingsRepository, SqliteChatRepository

START = 1_700_000_000_000


class FakeClock:
    """Deterministic epoch-ms clock."""

    def __init__(self, start=START):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def database(tmp_path):
    """Database on a fresh file in a not-yet-existing directory."""
    db = Database(tmp_path / "data" / "db" / "chat.db")
    yield db
    db.close()


@pytest.fixture
def repository(database, clock):
    return SqliteChatRepository(database, clock=clock)


@pytest.fixture
def settings_repository(database, clock):
    return SettingsRepository(database, clock=clock)
