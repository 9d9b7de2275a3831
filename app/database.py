"""Database access for synced user records."""

from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import Column, DateTime, Integer, String, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from config.settings import get_settings

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """A user known to the external identity provider."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    identity_id = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    image = Column(String, nullable=True)
    created_at = Column(DateTime, default=_utcnow)


def build_engine(url: str) -> Engine:
    """Create an engine, making sure a file-backed SQLite directory exists."""
    if url.startswith("sqlite"):
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection so every session sees the same memory db
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        db_path = Path(url.split("///", 1)[-1])
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url)


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return build_engine(get_settings().database_url)


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker:
    return sessionmaker(bind=get_engine())


def init_db(engine: Optional[Engine] = None):
    """Initialize the database schema."""
    Base.metadata.create_all(engine or get_engine())


def get_db() -> Iterator[Session]:
    """Yield a session for one request."""
    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()
