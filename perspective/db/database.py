from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager
from typing import Optional

from loguru import logger
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from config import get_settings
from perspective.db.models.base import Base

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker[Session]] = None


def get_engine() -> Engine:
    """Get the database engine, creating it from settings on first use."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine(
            settings.database_url,
            echo=settings.log_level == "DEBUG",
            pool_pre_ping=True,
        )
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine(), autocommit=False, autoflush=False)
    return _session_factory


def configure(engine: Engine) -> sessionmaker[Session]:
    """Bind the module to an explicit engine (tests, scripts)."""
    global _engine, _session_factory
    _engine = engine
    _session_factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    return _session_factory


def init_db() -> None:
    """Initialize database tables."""
    # Register every model on the metadata
    import perspective.db.models  # noqa: F401

    Base.metadata.create_all(bind=get_engine())
    logger.info("Database tables initialized")


@contextmanager
def session_scope(
    factory: Optional[sessionmaker[Session]] = None,
) -> Generator[Session, None, None]:
    """Provide a transactional scope around a series of operations."""
    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:  # Intentionally broad - rollback on any error before re-raising
        session.rollback()
        raise
    finally:
        session.close()
