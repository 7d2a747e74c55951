from __future__ import annotations

from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings


def build_engine(url: str | None = None) -> Engine:
    eff = str(url or settings.database_url)
    kwargs: dict = {"pool_pre_ping": True, "echo": bool(settings.db_echo)}
    if not eff.startswith("sqlite"):
        kwargs.update(
            pool_size=int(settings.db_pool_size),
            max_overflow=int(settings.db_max_overflow),
            pool_recycle=int(settings.db_pool_recycle_seconds),
        )
    return create_engine(eff, **kwargs)


engine = build_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Iterator[Session]:
    """Request-scoped session; routes and services decide when to commit."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
