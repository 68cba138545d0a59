"""Database connection and session management."""
import logging
from typing import Generator, Optional

from fastapi import Request
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from .config import Settings
from .models import Base

logger = logging.getLogger("oneplan-core.database")


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def build_engine(database_url: str) -> Engine:
    """
    Create the SQLAlchemy engine for a connection string.

    Server databases get a small bounded pool; SQLite gets foreign keys
    switched on, and in-memory SQLite shares a single connection so every
    session sees the same data.
    """
    if _is_sqlite(database_url):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite+pysqlite://"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, **kwargs)

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    # Conservative pool settings (max ~10 connections per process)
    return create_engine(
        database_url,
        pool_pre_ping=True,          # Verify connections before using
        pool_size=3,                 # Base pool of 3 connections
        max_overflow=7,              # Allow up to 10 total connections
        pool_recycle=3600,           # Recycle connections every hour
        pool_timeout=30,             # Timeout after 30 seconds
    )


class Database:
    """
    Store handle constructed once at process start.

    The instance is attached to the application and handed to each request
    through ``get_db``; ``dispose`` closes the pool on shutdown.
    """

    def __init__(self, database_url: str, engine: Optional[Engine] = None):
        self.url = database_url
        self.engine = engine or build_engine(database_url)
        self.session_factory = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(settings.database_url)

    def create_all(self) -> None:
        """Create all tables that do not exist yet."""
        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Generator[Session, None, None]:
        """
        Yield a session and always close it.

        Yields:
            Session: SQLAlchemy database session
        """
        db = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    def ping(self) -> bool:
        """Run ``SELECT 1``; raises if the store is unreachable."""
        with self.engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True

    def dispose(self) -> None:
        logger.info("Disposing database engine")
        self.engine.dispose()


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Dependency function to get a database session from the app's store.

    Yields:
        Session: SQLAlchemy database session
    """
    database: Database = request.app.state.database
    yield from database.session()
