from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .alembic_utils import ensure_up_to_date
from .models import Base
from .settings import get_settings

logger = logging.getLogger("office_core.db")

LOCAL_SQLITE = Path(__file__).resolve().parents[1] / "office.db"

_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def database_url() -> str:
    """DATABASE_URL when configured, otherwise a SQLite file next to the code."""
    return get_settings().database_url or f"sqlite:///{LOCAL_SQLITE}"


def _engine_options(url: URL) -> dict[str, Any]:
    if url.get_backend_name() != "sqlite":
        return {"pool_pre_ping": True}
    logger.warning("Office data lives in SQLite (%s); use PostgreSQL for shared deployments.", url.database or ":memory:")
    options: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        # in-memory schemas exist per connection, so keep exactly one
        options["poolclass"] = StaticPool
    return options


def _sqlite_pragmas(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
    finally:
        cursor.close()


def get_engine(echo: bool = False) -> Engine:
    global _engine
    if _engine is None:
        url = make_url(database_url())
        engine = create_engine(url, echo=echo, **_engine_options(url))
        if url.get_backend_name() == "sqlite":
            event.listen(engine, "connect", _sqlite_pragmas)
        _engine = engine
    return _engine


def get_sessionmaker() -> sessionmaker:
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=False)
    return _SessionLocal


def reset_engine() -> None:
    """Drop the cached engine so the next call re-reads DATABASE_URL."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine, _SessionLocal = None, None


@contextmanager
def atomic(session: Session) -> Generator[Session, None, None]:
    """Commit the work done inside the block, or roll all of it back."""
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """A fresh session that commits on exit, for work outside a request."""
    session = get_sessionmaker()()
    try:
        with atomic(session):
            yield session
    finally:
        session.close()


def fastapi_session() -> Generator[Session, None, None]:
    session = get_sessionmaker()()
    try:
        yield session
    finally:
        session.close()


def init_database(auto_apply_ddl: Optional[bool] = None, enforce_alembic: Optional[bool] = None) -> Engine:
    """Create the schema (development) or verify the migration head, then return the engine."""
    settings = get_settings()
    engine = get_engine()
    if settings.auto_apply_ddl if auto_apply_ddl is None else auto_apply_ddl:
        Base.metadata.create_all(bind=engine)
    elif settings.enforce_alembic_migrations if enforce_alembic is None else enforce_alembic:
        ensure_up_to_date(engine)
    return engine
