"""
Database engine and session management.

The engine is created lazily on first use so that importing the application
never requires DATABASE_URL; a missing URL surfaces as ConfigurationError when
a request actually needs the database.
"""

from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from nayscake.core.config import settings

Base = declarative_base()

_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def get_engine() -> Engine:
    """Return the process-wide engine, creating it on first call."""
    global _engine
    if _engine is None:
        database_url = settings.require_database_url()
        engine_kwargs = {
            "pool_pre_ping": True,
            "pool_recycle": settings.DATABASE_POOL_RECYCLE,
            "echo": False,
        }
        if not database_url.startswith("sqlite"):
            engine_kwargs["pool_size"] = settings.DATABASE_POOL_SIZE
        _engine = create_engine(database_url, **engine_kwargs)
    return _engine


def get_session_local() -> sessionmaker:
    """Return the session factory bound to the lazy engine."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, bind=get_engine()
        )
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency yielding one session per request.

    The session is closed on every exit path so its pooled connection is
    always returned.
    """
    db = get_session_local()()
    try:
        yield db
    finally:
        db.close()


def reset_engine() -> None:
    """Dispose of the engine and forget the session factory."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None
