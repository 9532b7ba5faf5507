"""Database connection and session management.

One SQLite file, one live connection for the lifetime of the owning
``Database`` object. The FastAPI lifespan opens it at startup and closes it on
shutdown; tests build their own instance against a temporary file.
"""
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional, Union

import structlog
from fastapi import Request
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from chatrelay.errors import StorageError

logger = structlog.get_logger()

# Base class for models
Base = declarative_base()


def _set_sqlite_pragmas(dbapi_connection, connection_record):
    """Apply WAL journaling and foreign key enforcement on every new DBAPI connection."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Owner of the single store connection."""

    def __init__(self, path: Union[str, Path], echo: bool = False):
        self.path = Path(path)
        self.echo = echo
        self._engine: Optional[Engine] = None
        self._connection: Optional[Connection] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    def get_connection(self) -> Connection:
        """
        Return the live connection, opening it and creating the schema on first use.

        Repeated calls return the same handle until close() is called.

        Raises:
            StorageError: If the file cannot be opened or the schema cannot be created
        """
        if self._connection is None:
            self._open()
        return self._connection

    def _open(self) -> None:
        # Tables must be registered on Base.metadata before create_all
        from chatrelay import models  # noqa: F401

        engine = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)

            engine = create_engine(
                f"sqlite:///{self.path}",
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
                echo=self.echo
            )
            event.listen(engine, "connect", _set_sqlite_pragmas)

            connection = engine.connect()
            with connection.begin():
                Base.metadata.create_all(connection)
        except (OSError, SQLAlchemyError) as e:
            if engine is not None:
                engine.dispose()
            logger.error(
                "database_initialization_failed",
                path=str(self.path),
                error=str(e),
                error_type=type(e).__name__
            )
            raise StorageError(
                f"Failed to initialize database at {self.path}: {e}",
                details={"path": str(self.path)}
            ) from e

        self._engine = engine
        self._connection = connection
        self._session_factory = sessionmaker(
            bind=connection,
            autoflush=False,
            expire_on_commit=False
        )
        logger.info("database_initialized", path=str(self.path))

    def close(self) -> None:
        """Release the connection. A later get_connection() opens a fresh one."""
        if self._connection is None:
            return
        try:
            self._connection.close()
        finally:
            self._engine.dispose()
            self._connection = None
            self._engine = None
            self._session_factory = None
            logger.info("database_closed", path=str(self.path))

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Yield an ORM session bound to the shared connection.

        Usage:
            with database.session() as session:
                with session.begin():
                    session.add(conversation)
        """
        self.get_connection()
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    def journal_mode(self) -> str:
        """Current SQLite journal mode, e.g. "wal"."""
        with self.session() as session:
            return str(session.execute(text("PRAGMA journal_mode")).scalar())


def get_db(request: Request) -> Database:
    """
    Dependency returning the application's Database.

    Usage:
        @router.get("/health")
        def health(db: Database = Depends(get_db)):
            return {"journal_mode": db.journal_mode()}
    """
    return request.app.state.database
