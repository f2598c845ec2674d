"""
Database configuration and session management for SQLAlchemy 2.0.

The DatabaseManager owns the engine and session factory used by the
SQLAlchemy repository. The connection pool is shared by every request
thread; each repository call opens its own short-lived session through
get_db().
"""

import logging
import os
from contextlib import contextmanager
from typing import Generator, Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine, event, Engine, text
from sqlalchemy.orm import sessionmaker, Session, DeclarativeBase
from sqlalchemy.exc import OperationalError

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


class DatabaseManager:
    """A centralized manager for database connections and sessions."""

    def __init__(self):
        self.engine: Optional[Engine] = None
        self.SessionFactory: Optional[sessionmaker[Session]] = None
        self._load_config()

    def _load_config(self):
        """Load database configuration from environment variables."""
        self.db_url = os.getenv("DATABASE_URL")
        self.pool_size = int(os.getenv("DATABASE_POOL_SIZE", "20"))
        self.max_overflow = int(os.getenv("DATABASE_MAX_OVERFLOW", "10"))
        self.pool_timeout = int(os.getenv("DATABASE_POOL_TIMEOUT", "30"))
        self.pool_recycle = int(os.getenv("DATABASE_POOL_RECYCLE", "3600"))
        self.echo = os.getenv("DATABASE_ECHO", "false").lower() == "true"

    def connect(self, db_url: Optional[str] = None):
        """
        Create the database engine and session factory.

        Args:
            db_url: Override for DATABASE_URL (used by tests and scripts)
        """
        self._load_config()
        if db_url:
            self.db_url = db_url
        if not self.db_url:
            raise ValueError("DATABASE_URL is not set. Please configure it in your environment.")

        engine_options = {"echo": self.echo, "pool_pre_ping": True}
        if not self.db_url.startswith("sqlite"):
            engine_options.update(
                pool_size=self.pool_size,
                max_overflow=self.max_overflow,
                pool_timeout=self.pool_timeout,
                pool_recycle=self.pool_recycle,
            )

        try:
            self.engine = create_engine(self.db_url, **engine_options)
            self.SessionFactory = sessionmaker(
                bind=self.engine,
                autocommit=False,
                autoflush=False,
                expire_on_commit=False,
            )
            self._register_event_listeners()
            logger.info("Database engine created")
        except Exception as e:
            logger.error(f"Failed to create database engine: {e}")
            raise

    def check_connection(self) -> bool:
        """
        Verify that a connection can be established to the database.
        Returns True on success, raises on failure.
        """
        if not self.engine:
            logger.error("Database engine not initialized. Call connect() first.")
            return False

        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database connection verified")
            return True
        except OperationalError as e:
            logger.error(f"Database connection failed: {e} (url={self.safe_url})")
            raise

    @property
    def safe_url(self) -> str:
        """Engine URL with the password masked."""
        if not self.engine:
            return ""
        return self.engine.url.render_as_string(hide_password=True)

    def get_session(self) -> Session:
        """Get a new database session."""
        if not self.SessionFactory:
            raise RuntimeError("SessionFactory not initialized. Call connect() first.")
        return self.SessionFactory()

    def _register_event_listeners(self):
        """Register SQLAlchemy event listeners."""
        if not self.engine or "postgresql" not in self.db_url:
            return

        @event.listens_for(self.engine, "connect")
        def set_statement_timeout(dbapi_conn, connection_record):
            """Keep point lookups on the auth path from hanging a worker."""
            cursor = dbapi_conn.cursor()
            try:
                cursor.execute("SET statement_timeout = '5s'")
            finally:
                cursor.close()


# --- Global Database Manager Instance ---
db_manager = DatabaseManager()
try:
    if db_manager.db_url:
        db_manager.connect()
except Exception as e:
    # Callers can still connect explicitly later
    logger.warning(f"Automatic DB connect failed: {e}")


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


@contextmanager
def get_db() -> Generator[Session, None, None]:
    """
    Context manager for providing a transactional database session.
    """
    session = db_manager.get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """
    Create all tables.
    WARNING: Use Alembic migrations for production.
    """
    if not db_manager.engine:
        raise RuntimeError("Database not connected. Call db_manager.connect() before initializing.")
    from src.models import Base as ModelsBase
    ModelsBase.metadata.create_all(bind=db_manager.engine)
    logger.info("Database tables created")
