"""
Database session management for persisted client state.

The engine URL comes from the preview settings
(persistence.database_url / REPLAYDASH_STATE_DATABASE_URL), SQLite by default.

Usage:
    from replaydash.database.session import get_session_factory

    session = get_session_factory()()
"""

import logging
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from replaydash.config.preview_settings import get_preview_settings_loader
from replaydash.db_base import Base

logger = logging.getLogger(__name__)

# Module-level engine singleton
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def _get_database_url() -> str:
    """
    Get and normalize the state database URL.

    Handles the postgres:// URL format by converting to postgresql://.
    """
    database_url = get_preview_settings_loader().get_state_database_url()
    if not database_url:
        raise ValueError("State database URL is not configured")

    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)

    return database_url


def create_state_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL and ensure the state tables exist.

    SQLite connections are shared across threads since the engine is a
    process-wide singleton.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    engine = create_engine(
        database_url,
        connect_args=connect_args,
        pool_pre_ping=True,
    )
    Base.metadata.create_all(engine)
    return engine


def get_engine() -> Engine:
    """Get or create the database engine singleton."""
    global _engine
    if _engine is None:
        try:
            database_url = _get_database_url()
            _engine = create_state_engine(database_url)
            logger.info(
                "State database engine created",
                extra={"dialect": _engine.dialect.name},
            )
        except ValueError as e:
            logger.error("Failed to create state database engine", extra={"error": str(e)})
            raise
    return _engine


def get_session_factory() -> sessionmaker:
    """Get or create the session factory singleton."""
    global _SessionLocal
    if _SessionLocal is None:
        engine = get_engine()
        _SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=engine
        )
    return _SessionLocal


def reset_engine() -> None:
    """Dispose the engine singleton (for tests only)."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None
