"""
Database session management.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Generator

from bias_detector.common.exceptions import ConfigurationError
from bias_detector.config.loader import get_config
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base

logger = logging.getLogger(__name__)

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None
_engine_lock = threading.Lock()


def build_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    engine_args: dict = {"echo": echo}
    backend = make_url(url).get_backend_name()
    if backend == "sqlite":
        engine_args["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            engine_args["poolclass"] = StaticPool
    else:
        engine_args["pool_pre_ping"] = True
    return create_engine(url, **engine_args)


def get_engine() -> Engine:
    global _engine, _session_factory
    if _engine is not None:
        return _engine
    with _engine_lock:
        if _engine is None:
            db_config = get_config().database
            _engine = build_engine(db_config.url, echo=db_config.echo)
            _session_factory = sessionmaker(
                autocommit=False, autoflush=False, bind=_engine
            )
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    get_engine()
    factory = _session_factory
    if factory is None:
        raise ConfigurationError(
            "Database engine was reset during initialization",
            error_code="DB_NOT_INITIALIZED",
        )
    return factory


def reset_engine() -> None:
    """Dispose the engine (mainly for testing and config reloads)."""
    global _engine, _session_factory
    with _engine_lock:
        if _engine is not None:
            _engine.dispose()
        _engine = None
        _session_factory = None


def init_db(engine: Engine | None = None) -> None:
    """Create tables that do not exist yet."""
    target = engine or get_engine()
    Base.metadata.create_all(bind=target)
    logger.info("Database schema ready (%s)", target.url.render_as_string())


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting a database session.
    Yields a SQLAlchemy Session and ensures it's closed after use.
    """
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()
