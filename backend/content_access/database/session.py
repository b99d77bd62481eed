"""
Engine and session wiring for the content access store.

The engine is built lazily from DATABASE_URL. On PostgreSQL every statement
carries statement_timeout from content_access.yml, so a stalled store
surfaces as InfrastructureError instead of a hung access check.

Usage:
    from content_access.database.session import get_db_session

    @router.get("/things")
    def list_things(db_session: Session = Depends(get_db_session)):
        ...
"""

import os
import logging
from typing import Generator, Optional

from fastapi import HTTPException, status
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from content_access.config.settings import get_access_settings

logger = logging.getLogger(__name__)

DATABASE_URL_ENV_VAR = "DATABASE_URL"

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def database_url_from_env() -> str:
    """
    Read DATABASE_URL, accepting the legacy postgres:// scheme.

    Raises:
        ValueError: If DATABASE_URL is unset
    """
    url = os.getenv(DATABASE_URL_ENV_VAR)
    if not url:
        raise ValueError(f"{DATABASE_URL_ENV_VAR} environment variable is not set")
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


def build_engine(url: str) -> Engine:
    """Create an engine with dialect-appropriate pooling and timeouts."""
    if url.startswith("sqlite"):
        # Local runs only; one shared connection so :memory: survives.
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    connect_args = {}
    if url.startswith("postgresql"):
        timeout_ms = get_access_settings().statement_timeout_ms
        connect_args["options"] = f"-c statement_timeout={timeout_ms}"

    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=1800,
        connect_args=connect_args,
    )


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        url = database_url_from_env()
        _engine = build_engine(url)
        logger.info("Content access engine created", extra={"dialect": _engine.dialect.name})
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=True)
    return _session_factory


def reset_engine() -> None:
    """Dispose the engine so the next call re-reads DATABASE_URL."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


def get_db_session() -> Generator[Session, None, None]:
    """
    Request-scoped session dependency.

    Responds 503 when the store is not configured.
    """
    try:
        factory = get_session_factory()
    except ValueError as e:
        logger.error("Content access store not configured", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not configured"
        )

    db_session = factory()
    try:
        yield db_session
    finally:
        db_session.close()
