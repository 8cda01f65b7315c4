from __future__ import annotations

from collections.abc import Callable
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

SessionFactory = Callable[[], Session]


def create_sqlalchemy_engine(database_url: str) -> Engine:
    return create_engine(database_url, future=True, pool_pre_ping=True)


def create_sqlalchemy_session_factory(
    database_url: Optional[str] = None,
    *,
    engine: Optional[Engine] = None,
) -> SessionFactory:
    """Create a factory producing SQLAlchemy sessions for the SQL repositories.

    Either pass a ready engine (tests share one in-memory SQLite engine this
    way) or a database URL.
    """

    if engine is None:
        if not database_url:
            raise ValueError("database_url or engine is required")
        engine = create_sqlalchemy_engine(database_url)

    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, class_=Session)

    def _factory() -> Session:
        return SessionLocal()

    return _factory
