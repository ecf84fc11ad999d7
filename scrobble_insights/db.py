"""Database connection and session management"""
import logging
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from scrobble_insights.models.db import Base
from scrobble_insights.config import load_settings

logger = logging.getLogger(__name__)

class Database:
    """Database connection and session manager for the listen history store"""

    def __init__(self):
        """Initialize database manager state"""
        self._engine = None
        self._SessionLocal = None

    def _get_connection_string(self, connection_string: Optional[str]) -> str:
        """
        Resolve the database URL, falling back to settings.

        Raises:
            ValueError: If no database URL is configured
        """
        url = connection_string or load_settings().DATABASE_URL
        if not url:
            logger.error("No database URL configured")
            raise ValueError("DATABASE_URL setting is required")
        return url

    def init(self, connection_string: Optional[str] = None) -> None:
        """
        Initialize database connection and create tables.
        """
        try:
            url = self._get_connection_string(connection_string)
            if url in ('sqlite://', 'sqlite:///:memory:'):
                # A single shared connection, otherwise each session sees its own empty database
                self._engine = create_engine(
                    url, connect_args={'check_same_thread': False}, poolclass=StaticPool
                )
            else:
                self._engine = create_engine(url)
            Base.metadata.create_all(self._engine)
            self._SessionLocal = sessionmaker(bind=self._engine)
            logger.info("Database initialized successfully")

        except SQLAlchemyError as e:
            logger.error(f"Database initialization failed: {e}")
            raise

    def get_session(self) -> Session:
        """Get a new database session"""
        if not self._SessionLocal:
            raise RuntimeError("Database not initialized. Call init() first.")
        return self._SessionLocal()

    def dispose(self) -> None:
        """Release pooled connections; init() must be called again before reuse"""
        if self._engine:
            self._engine.dispose()
            self._engine = None
            self._SessionLocal = None

# Global database instance
db = Database()
