"""
Database connection management for Aqua Assist
PostgreSQL in production, SQLite for development and tests
"""

import os
import logging
from contextlib import contextmanager
from typing import Callable, Generator, Optional, TypeVar

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.exc import SQLAlchemyError

from aquaassist.core.config import settings
from aquaassist.core.exceptions import ConflictError
from .models import Base

T = TypeVar("T")

logger = logging.getLogger(__name__)


class DatabaseConnection:
    """
    Database connection manager with connection pooling.

    Every read-modify-write of a report goes through get_session(), which
    commits on success and rolls back on any error.
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_timeout: int = 30
    ):
        """
        Initialize database connection.

        Args:
            database_url: SQLAlchemy connection URL
            pool_size: Connection pool size (server databases only)
            max_overflow: Max connections beyond pool_size
            pool_timeout: Timeout for getting connection from pool
        """
        self.database_url = database_url or settings.database_url
        echo = os.getenv("DB_ECHO", "false").lower() == "true"

        if self.database_url.startswith("sqlite"):
            engine_kwargs = {
                "connect_args": {"check_same_thread": False, "timeout": 30},
            }
            if self.database_url in ("sqlite://", "sqlite:///:memory:"):
                # Single shared connection so every session sees the same memory database
                engine_kwargs["poolclass"] = StaticPool
            self.engine = create_engine(self.database_url, echo=echo, **engine_kwargs)
        else:
            self.engine = create_engine(
                self.database_url,
                poolclass=QueuePool,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
                pool_pre_ping=True,  # Verify connections before use
                echo=echo
            )

        # Session factory
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine
        )

        logger.info(f"Database connection initialized: {self._mask_url(self.database_url)}")

    def _mask_url(self, url: str) -> str:
        """Mask password in connection URL for logging."""
        if "@" in url and ":" in url:
            parts = url.split("@")
            credentials = parts[0].split(":")
            if len(credentials) >= 3:
                credentials[-1] = "****"
            return ":".join(credentials) + "@" + parts[1]
        return url

    def create_tables(self) -> None:
        """Create all database tables."""
        try:
            Base.metadata.create_all(bind=self.engine)
            logger.info("Database tables created successfully")
        except SQLAlchemyError as e:
            logger.error(f"Failed to create tables: {e}")
            raise

    def drop_tables(self) -> None:
        """Drop all database tables. Use with caution!"""
        try:
            Base.metadata.drop_all(bind=self.engine)
            logger.warning("All database tables dropped")
        except SQLAlchemyError as e:
            logger.error(f"Failed to drop tables: {e}")
            raise

    def check_connection(self) -> bool:
        """
        Check if database connection is healthy.

        Returns:
            True if connection is healthy
        """
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database connection check failed: {e}")
            return False

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """
        Context manager for database sessions.

        Yields:
            SQLAlchemy session
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.debug(f"Database session rolled back: {e}")
            raise
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def run_transaction(
        self,
        work: Callable[[Session], T],
        max_retries: int = 5,
        label: str = "transaction"
    ) -> T:
        """
        Run a read-modify-write in its own session, retrying version collisions.

        work() is re-run from scratch on every attempt, so it must load the
        rows it modifies from the session it receives.

        Args:
            work: Callable receiving the session and returning a result
            max_retries: Attempts before giving up
            label: Name used in log messages

        Returns:
            Whatever work() returned on the committed attempt

        Raises:
            ConflictError: If every attempt hit a concurrent update
        """
        for attempt in range(1, max_retries + 1):
            try:
                with self.get_session() as session:
                    return work(session)
            except StaleDataError:
                logger.debug(f"{label}: concurrent update detected (attempt {attempt}/{max_retries})")

        logger.warning(f"{label}: gave up after {max_retries} concurrent update collisions")
        raise ConflictError(f"{label} kept colliding with concurrent updates, retry later")

    def close(self) -> None:
        """Close database connection and dispose engine."""
        self.engine.dispose()
        logger.info("Database connection closed")


# Global database instance
_db: Optional[DatabaseConnection] = None


def get_db() -> DatabaseConnection:
    """
    Get global database connection instance.

    Returns:
        DatabaseConnection instance
    """
    global _db
    if _db is None:
        _db = DatabaseConnection(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
        )
    return _db


def init_db(database_url: Optional[str] = None) -> DatabaseConnection:
    """
    Initialize global database connection and create missing tables.

    Args:
        database_url: Optional database URL override

    Returns:
        DatabaseConnection instance
    """
    global _db
    _db = DatabaseConnection(database_url=database_url)
    _db.create_tables()
    return _db
