"""Database session management with connection pooling"""

from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from microledger.config import settings


def build_engine(database_url: str, lock_timeout_seconds: float) -> Engine:
    """Create an engine whose lock waits are bounded by lock_timeout_seconds"""
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": lock_timeout_seconds},
        )

    # Connection pool: max 20 connections, recycle after 1 hour to avoid stale connections
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=10,
        pool_recycle=3600,
        connect_args={"options": f"-c lock_timeout={int(lock_timeout_seconds * 1000)}"},
    )


@lru_cache
def get_engine() -> Engine:
    return build_engine(settings.database_url, settings.db_lock_timeout_seconds)


@lru_cache
def get_session_factory() -> sessionmaker:
    return sessionmaker(autoflush=False, bind=get_engine())


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """Commit everything done inside the block, or roll all of it back"""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def get_db() -> Iterator[Session]:
    """Dependency injection for database sessions"""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()
