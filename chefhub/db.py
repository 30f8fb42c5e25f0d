from __future__ import annotations

import math

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from .settings import settings


class Base(DeclarativeBase):
    pass


_engine = None
_SessionLocal = None


def _null_safe(fn):
    def wrapper(value):
        return None if value is None else fn(value)
    return wrapper


# Functions used by the Haversine expression in discovery queries.
# Postgres ships them; SQLite only does when compiled with math support.
SQLITE_MATH_FUNCTIONS = {
    "radians": _null_safe(math.radians),
    "sin": _null_safe(math.sin),
    "cos": _null_safe(math.cos),
    "asin": _null_safe(lambda v: math.asin(min(1.0, max(-1.0, v)))),
    "sqrt": _null_safe(lambda v: math.sqrt(max(0.0, v))),
}


def install_sqlite_functions(engine) -> None:
    """Register Python math functions on every new SQLite connection."""
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _register(dbapi_conn, _record):
        for name, fn in SQLITE_MATH_FUNCTIONS.items():
            dbapi_conn.create_function(name, 1, fn, deterministic=True)


def init_engine(database_url: str | None = None):
    global _engine, _SessionLocal
    url = database_url or settings.database_url
    _engine = create_engine(url, pool_pre_ping=True)
    install_sqlite_functions(_engine)
    _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)
    return _engine


def get_engine():
    global _engine
    if _engine is None:
        init_engine()
    return _engine


def SessionLocal():
    global _SessionLocal
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


def get_db():
    db = SessionLocal()()
    try:
        yield db
    finally:
        db.close()
