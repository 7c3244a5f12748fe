import logging
from contextlib import contextmanager
from typing import Any

from sqlalchemy import Engine
from sqlalchemy import create_engine
from sqlalchemy import text
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from smarttask.config import get_settings

logger = logging.getLogger(__name__)

_settings = get_settings()

# Create Base class
Base = declarative_base()


def make_engine(db_url: str, **kwargs) -> Engine:
    """Create a SQLAlchemy engine with the given URL and options.

    Args:
        db_url: Database connection URL
        **kwargs: Additional arguments for create_engine

    Returns:
        A SQLAlchemy Engine instance
    """
    connect_args = kwargs.pop("connect_args", {})
    if "sqlite" in db_url:
        connect_args.setdefault("check_same_thread", False)
        if ":memory:" in db_url:
            # Every connection to ":memory:" is a new database – share one.
            kwargs.setdefault("poolclass", StaticPool)
        else:
            connect_args["timeout"] = 30

    return create_engine(db_url, connect_args=connect_args, **kwargs)


def make_sessionmaker(engine: Engine) -> sessionmaker:
    """Create a sessionmaker bound to the given engine.

    ``expire_on_commit=False`` keeps attributes accessible after
    :func:`db_session` has committed and closed the session; services map
    rows to DTOs inside the session anyway.
    """
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


def _resolve_database_url() -> str:
    if _settings.database_url:
        return _settings.database_url
    return "sqlite:///:memory:" if _settings.testing else "sqlite:///./smarttask.db"


# Default engine and sessionmaker instances for app usage.  Tests replace the
# factory through ``create_app(session_factory=...)``.
default_engine = make_engine(_resolve_database_url())
default_session_factory = make_sessionmaker(default_engine)


def get_session_factory() -> sessionmaker:
    """Return the default session factory for the application."""
    return default_session_factory


@contextmanager
def db_session(session_factory: Any = None):
    """Single way to manage database sessions in services.

    1. Auto-commit on success
    2. Auto-rollback on error
    3. Always close session

    Usage:
        with db_session(factory) as db:
            user = crud.create_user(db, ...)
    """
    factory = session_factory or get_session_factory()
    session = factory()

    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error("Database session rolled back due to error: %s", e)
        raise
    finally:
        session.close()


def check_connection(session_factory: Any = None) -> bool:
    """Run ``SELECT 1`` and report whether the database answered."""
    factory = session_factory or get_session_factory()
    try:
        with factory() as s:
            s.execute(text("SELECT 1"))
    except Exception as e:  # noqa: BLE001 – surfaced as unhealthy, not raised
        logger.warning("Database health check failed: %s", e)
        return False
    return True


def initialize_database(engine: Engine = None) -> None:
    """Create all tables on *engine* (defaults to ``default_engine``)."""
    # Import all models to ensure they are registered with Base
    from smarttask.models.models import RefreshToken  # noqa: F401
    from smarttask.models.models import Task  # noqa: F401
    from smarttask.models.models import User  # noqa: F401

    target_engine = engine or default_engine
    Base.metadata.create_all(bind=target_engine)
