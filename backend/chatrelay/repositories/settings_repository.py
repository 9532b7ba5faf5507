"""Provider API keys stored in the settings table.

Keys live under ``api_key_<provider>`` rows in the same SQLite file as the
conversations, so they survive restarts without touching the environment.
"""
from contextlib import contextmanager
from typing import Callable, Dict, Generator, Optional

import structlog
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chatrelay.database import Database
from chatrelay.errors import StorageError
from chatrelay.models.setting import Setting
from chatrelay.services.providers import SUPPORTED_PROVIDERS
from chatrelay.utils import now_ms

logger = structlog.get_logger()


def api_key_setting(provider: str) -> str:
    return f"api_key_{provider}"


class SettingsRepository:
    """Read and write stored provider API keys."""

    def __init__(self, database: Database, clock: Callable[[], int] = now_ms):
        self.database = database
        self.clock = clock

    @contextmanager
    def _transaction(self, operation: str, provider: str) -> Generator[Session, None, None]:
        try:
            with self.database.session() as session:
                with session.begin():
                    yield session
        except SQLAlchemyError as e:
            # str(e) carries the bound parameters, i.e. the key itself
            reason = str(e.orig) if getattr(e, "orig", None) is not None else type(e).__name__
            logger.error(
                "settings_operation_failed",
                operation=operation,
                provider=provider,
                error=reason,
                error_type=type(e).__name__
            )
            raise StorageError(f"Failed to {operation} API key for {provider}: {reason}") from e

    def get_api_key(self, provider: str) -> Optional[str]:
        with self._transaction("read", provider) as session:
            setting = session.get(Setting, api_key_setting(provider))
            return setting.value if setting is not None else None

    def set_api_key(self, provider: str, key: str) -> None:
        """Insert or replace the stored key for a provider."""
        now = self.clock()
        statement = insert(Setting).values(key=api_key_setting(provider), value=key, updated_at=now)
        statement = statement.on_conflict_do_update(
            index_elements=[Setting.key],
            set_={"value": key, "updated_at": now}
        )
        with self._transaction("save", provider) as session:
            session.execute(statement)

    def get_all_api_keys(self) -> Dict[str, Optional[str]]:
        """Stored key per supported provider, None where nothing is stored."""
        with self._transaction("read", "all") as session:
            rows = session.query(Setting).filter(
                Setting.key.in_([api_key_setting(p) for p in SUPPORTED_PROVIDERS])
            ).all()
            stored = {row.key: row.value for row in rows}

        return {provider: stored.get(api_key_setting(provider)) for provider in SUPPORTED_PROVIDERS}

    def delete_api_key(self, provider: str) -> None:
        """Remove the stored key. Deleting a key that was never stored is a no-op."""
        with self._transaction("delete", provider) as session:
            session.query(Setting).filter(
                Setting.key == api_key_setting(provider)
            ).delete(synchronize_session=False)
