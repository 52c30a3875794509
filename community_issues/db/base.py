"""Database configuration and base setup for the Community Issue Tracker."""

from contextlib import contextmanager
from typing import Generator, Iterator, Optional

import structlog
from sqlalchemy import Engine, create_engine
from sqlalchemy.engine.url import URL, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_settings

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


# Default to a local SQLite database when DATABASE_URL is not provided.
DEFAULT_DATABASE_URL = "sqlite:///./community_issues.db"


def _ensure_sync_driver(url: URL) -> URL:
    """Force a synchronous driver for Alembic and the ORM engine."""

    if url.drivername.startswith("postgresql+"):
        # Normalize any async driver variants to psycopg (sync)
        if any(token in url.drivername for token in ("async", "aiopg")):
            url = url.set(drivername="postgresql+psycopg")
    elif url.drivername.startswith("sqlite+"):
        if "aiosqlite" in url.drivername:
            url = url.set(drivername="sqlite")

    return url


def get_database_url(raw_url: Optional[str] = None) -> str:
    """Return a database URL with a guaranteed synchronous driver."""

    url = make_url(raw_url or get_settings().database_url or DEFAULT_DATABASE_URL)
    # str(url) would mask the password with ***
    return _ensure_sync_driver(url).render_as_string(hide_password=False)


_engine: Optional[Engine] = None


def get_engine() -> Engine:
    """
    Create and cache the database engine.

    Lazy so that the URL is read from settings at runtime rather than at
    import time.
    """
    global _engine
    if _engine is not None:
        return _engine

    database_url = get_database_url()

    if database_url.startswith("sqlite"):
        _engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        _engine = create_engine(
            database_url,
            pool_size=20,
            max_overflow=30,
            pool_pre_ping=True,
            pool_recycle=3600,
        )

    return _engine


def get_session_local() -> sessionmaker:
    """Get a sessionmaker bound to the current engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())


def get_db() -> Generator[Session, None, None]:
    """Dependency to get database session."""
    session_local = get_session_local()
    db = session_local()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope(db: Session) -> Iterator[Session]:
    """Run a unit of work: commit on success, roll back on any failure.

    Usage:
        with session_scope(db) as session:
            session.add(model)
    """
    try:
        yield db
        db.commit()
    except BaseException:
        db.rollback()
        raise


def init_database(engine: Optional[Engine] = None) -> None:
    """Initialize the database with all tables."""
    # Import all models to ensure they're registered with Base
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine or get_engine())
    logger.info("database_initialized")

