"""
Database wiring.

The engine and session factory are built from Settings by the app factory and
kept on ``app.state``; ``get_db`` hands one Session to each request.
"""
import logging

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(database_url: str) -> Engine:
    """Create an engine with pooling suited to the backend"""
    db_url_safe = database_url.split("@")[-1] if "@" in database_url else database_url
    logger.info(f"[DB] Creating database engine for: {db_url_safe[:40]}")

    if database_url.startswith("sqlite"):
        if ":memory:" in database_url or database_url == "sqlite://":
            # One shared connection so every session sees the same in-memory db
            return create_engine(
                database_url,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": 15},
        )

    return create_engine(
        database_url,
        pool_size=20,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def get_db(request: Request):
    """FastAPI dependency that provides a database session."""
    session_factory = request.app.state.session_factory
    db = session_factory()
    try:
        yield db
    finally:
        db.close()
