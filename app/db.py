"""Database engine, session factory and FastAPI dependency."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import get_settings

Base = declarative_base()


def _engine_kwargs(url: str, pool_size: int, max_overflow: int) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        # In-memory sqlite must share one connection across sessions.
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return {
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": True,
    }


class DatabaseManager:
    """Owns the engine and session factory for one process."""

    def __init__(self, database_url: Optional[str] = None) -> None:
        settings = get_settings()
        url = database_url or settings.database_url
        if not url:
            raise ValueError("Database URL is not set.")
        self.engine: Engine = create_engine(
            url,
            **_engine_kwargs(
                url, settings.database_pool_size, settings.database_max_overflow
            ),
        )
        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, bind=self.engine
        )

    @contextmanager
    def db_session(self) -> Generator[Session, None, None]:
        """Yield a session that is closed on exit and rolled back on error."""
        db = self.SessionLocal()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def dispose(self) -> None:
        self.engine.dispose()


db_manager = DatabaseManager()
engine = db_manager.engine
SessionLocal = db_manager.SessionLocal


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding a request-scoped session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
