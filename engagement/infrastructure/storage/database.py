"""
Database Connection and Session Management
Builds the SQLAlchemy engine and session factory for the record store
"""
import os
from contextlib import contextmanager
from typing import Iterator, Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from engagement.infrastructure.storage.models import Base

# Load environment variables
load_dotenv()


def get_database_url(default: str = "sqlite:///./engagement.db") -> str:
    """Database URL from DATABASE_URL, falling back to a local SQLite file."""
    return os.getenv("DATABASE_URL", default)


def create_db_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Create the engine for a database URL.

    In-memory SQLite shares a single connection so every session sees the
    same database.
    """
    url = database_url or get_database_url()

    if url.startswith("sqlite") and (":memory:" in url or url.rstrip("/") == "sqlite:"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False}, echo=echo)
    return create_engine(url, pool_pre_ping=True, echo=echo)


def create_session_factory(engine: Engine, create_tables: bool = True) -> sessionmaker:
    """Session factory bound to an engine, creating tables on request."""
    if create_tables:
        Base.metadata.create_all(engine)
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@contextmanager
def session_scope(factory: sessionmaker) -> Iterator[Session]:
    """
    Database session with automatic commit/rollback and cleanup

    Usage:
        with session_scope(factory) as db:
            db.add(record)
    """
    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
