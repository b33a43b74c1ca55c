"""
Database configuration with lazy initialization.

The database engine is created lazily on first access so the app can start
and answer health checks even when the database is not reachable yet.
"""
import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import QueuePool

from .config import settings
from .core.env import is_production_env

logger = logging.getLogger(__name__)

# Global engine instance (lazily initialized)
_engine = None
_SessionLocal = None

Base = declarative_base()


def get_engine():
    """
    Get or create the database engine (lazy initialization).
    """
    global _engine
    if _engine is None:
        # Production safety: require a real database, never SQLite
        if is_production_env():
            if not settings.database_url:
                raise ValueError("CRITICAL: DATABASE_URL is required in production")
            if settings.database_url.startswith("sqlite"):
                raise ValueError(
                    "CRITICAL: SQLite database is not supported in production. "
                    "Please use PostgreSQL."
                )

        # Log only the scheme and host prefix, never credentials
        db_url_safe = settings.database_url[:30] + "..." if len(settings.database_url) > 30 else settings.database_url
        logger.info(f"Creating database engine for: {db_url_safe}")

        if settings.database_url.startswith("sqlite"):
            # SQLite: minimal pooling for dev
            _engine = create_engine(
                settings.database_url,
                poolclass=QueuePool,
                pool_size=5,
                max_overflow=0,
                connect_args={"check_same_thread": False},
            )
        else:
            # PostgreSQL: production pooling
            _engine = create_engine(
                settings.database_url,
                poolclass=QueuePool,
                pool_size=20,
                max_overflow=10,
                pool_pre_ping=True,
                pool_recycle=3600,
            )
    return _engine


def get_session_local():
    """Get or create the SessionLocal class."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _SessionLocal


def get_db():
    """
    Dependency that provides a database session.
    Used by FastAPI's dependency injection.
    """
    session_class = get_session_local()
    db = session_class()
    try:
        yield db
    finally:
        db.close()


def init_db(engine=None):
    """Create all tables. Called once at application startup."""
    from . import models  # noqa: F401  (register mappers on Base)

    Base.metadata.create_all(bind=engine or get_engine())
