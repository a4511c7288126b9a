"""Engine and session management for the grid swap database."""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool

from swap_db.settings import DatabaseSettings
from swap_db.models import Base
from swap_db.utils import redact_db_url


logger = logging.getLogger(__name__)


class DatabaseFactory:
    """Lazily created engine plus transactional sessions.

    Usage:
        db = DatabaseFactory.from_url("sqlite:///gridswap.db")
        db.create_tables()

        with db.get_session() as session:
            grid = GridRepository(session).get_by_id(grid_id)
            # Commits automatically on success

    The bot writes a checkpoint per grid every tick while admin commands may
    write from another process, so file-backed SQLite runs in WAL mode with a
    busy timeout.
    """

    def __init__(self, settings: Optional[DatabaseSettings] = None):
        self.settings = settings or DatabaseSettings()
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @classmethod
    def from_url(cls, database_url: Optional[str] = None) -> "DatabaseFactory":
        """Factory for an explicit URL, or from GRIDSWAP_* settings when None."""
        if database_url:
            return cls(DatabaseSettings(database_url=database_url))
        return cls()

    @property
    def url(self) -> str:
        return self.settings.get_database_url()

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            url = self.url
            logger.debug(f"Creating engine for {redact_db_url(url)}")
            self._engine = self._sqlite_engine(url) if url.startswith("sqlite") else self._pooled_engine(url)
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            # Loaded rows are converted to domain objects after commit
            self._session_factory = sessionmaker(
                autocommit=False,
                autoflush=False,
                expire_on_commit=False,
                bind=self.engine,
            )
        return self._session_factory

    def _sqlite_engine(self, url: str) -> Engine:
        in_memory = ":memory:" in url or url.rstrip("/").endswith(":")
        kwargs = {
            "echo": self.settings.echo_sql,
            "connect_args": {"check_same_thread": False, "timeout": self.settings.sqlite_busy_timeout},
        }
        if in_memory:
            # One shared connection keeps the in-memory database alive
            kwargs["poolclass"] = StaticPool

        engine = create_engine(url, **kwargs)

        @event.listens_for(engine, "connect")
        def configure_sqlite(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            # Trades cascade on grid delete
            cursor.execute("PRAGMA foreign_keys=ON")
            if not in_memory:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

        return engine

    def _pooled_engine(self, url: str) -> Engine:
        return create_engine(
            url,
            echo=self.settings.echo_sql,
            poolclass=QueuePool,
            pool_size=self.settings.pool_size,
            max_overflow=self.settings.max_overflow,
            pool_timeout=self.settings.pool_timeout,
            pool_recycle=self.settings.pool_recycle,
            pool_pre_ping=True,
        )

    def create_tables(self) -> None:
        """Create the grids and trades tables if they do not exist."""
        Base.metadata.create_all(bind=self.engine)

    def drop_tables(self) -> None:
        """Drop all tables. Tests only."""
        Base.metadata.drop_all(bind=self.engine)

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """One transaction: commit on success, roll back on any exception."""
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
