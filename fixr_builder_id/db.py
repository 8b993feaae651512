# fixr_builder_id/db.py
"""Database session and connection management for claim records"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional
from urllib.parse import urlparse

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.exc import SQLAlchemyError

from fixr_builder_id.models.db import Base
from fixr_builder_id.config import settings

logger = logging.getLogger(__name__)

SUPPORTED_SCHEMES = ('sqlite', 'postgresql', 'postgresql+psycopg2', 'postgresql+psycopg')

class Database:
    """Database connection and session manager"""

    def __init__(self):
        """Initialize database manager state"""
        self._engine = None
        self._SessionLocal = None

    @staticmethod
    def validate_url(url: str) -> bool:
        """Validate database URL scheme"""
        try:
            return urlparse(url).scheme in SUPPORTED_SCHEMES
        except ValueError:
            return False

    def _get_connection_string(self, url: Optional[str]) -> str:
        """
        Resolve the connection string, falling back to DATABASE_URL.

        Raises:
            ValueError: If the URL is missing or uses an unsupported scheme
        """
        connection_string = url or settings.DATABASE_URL
        if not connection_string or not self.validate_url(connection_string):
            logger.error("Failed to initialize database connection: unsupported DATABASE_URL")
            raise ValueError("DATABASE_URL must be a sqlite or postgresql URL")
        return connection_string

    def init(self, url: Optional[str] = None) -> None:
        """
        Initialize database connection and create tables.

        This should be called once at application startup.

        Raises:
            SQLAlchemyError: If database initialization fails
        """
        try:
            connection_string = self._get_connection_string(url)
            connect_args = {}
            if connection_string.startswith('sqlite'):
                # Store calls run in worker threads
                connect_args = {'check_same_thread': False, 'timeout': 30}
            self._engine = create_engine(connection_string, connect_args=connect_args)
            Base.metadata.create_all(self._engine)
            self._SessionLocal = sessionmaker(bind=self._engine, expire_on_commit=False)
            logger.info("Database initialized successfully")

        except SQLAlchemyError as e:
            logger.error(f"Database initialization failed: {e}")
            raise

    @property
    def initialized(self) -> bool:
        return self._SessionLocal is not None

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """
        Commit on success, roll back on any error.

        Usage:
            with db.session() as session:
                session.add(BuilderIDRow(...))

        Raises:
            RuntimeError: If database not initialized
            SQLAlchemyError: If database operations fail
        """
        if not self._SessionLocal:
            raise RuntimeError("Database not initialized. Call init() first.")

        session = self._SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        """Release pooled connections; init() must be called again before reuse"""
        if self._engine:
            self._engine.dispose()
            self._engine = None
            self._SessionLocal = None

# Global database instance
db = Database()
