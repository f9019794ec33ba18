"""Database engine/session helpers."""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

SERIALIZABLE = "SERIALIZABLE"


def create_db_engine(db_url: str, **kwargs) -> Engine:
    """Create a SQLAlchemy engine with conservative defaults for services and scripts."""
    return create_engine(db_url, pool_pre_ping=True, **kwargs)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create a session factory bound to the provided engine."""
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def create_serializable_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create a session factory whose transactions run at SERIALIZABLE isolation."""
    serializable_engine = engine.execution_options(isolation_level=SERIALIZABLE)
    return sessionmaker(bind=serializable_engine, autoflush=False, expire_on_commit=False)
