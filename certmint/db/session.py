"""Database engine and session management for certmint.

This module provides SQLAlchemy engine and session construction:
- create_db_engine(): engine configured for SQLite (dev) or PostgreSQL (prod)
- create_session_factory(): session factory bound to an engine
- session_scope(): context manager for non-request code
- init_database(): idempotent table creation at startup

The engine and factory are owned by the ServiceContext; nothing here is a
module-level singleton.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from certmint.db.models import Base

log = logging.getLogger(__name__)


def create_db_engine(url: str) -> Engine:
    """Create an engine for the given database URL.

    PostgreSQL gets full connection pooling; SQLite uses a single shared
    connection (StaticPool) so in-memory databases survive across sessions.
    """
    if url.startswith("sqlite"):
        engine_kwargs = {
            "echo": False,
            "pool_pre_ping": True,
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
        log.info("Using SQLite database (local development mode)")
    else:
        engine_kwargs = {
            "echo": False,
            "pool_pre_ping": True,      # Verify connections before use
            "pool_size": 5,
            "max_overflow": 10,
            "pool_recycle": 1800,       # Recycle connections every 30 min
        }
        log.info("Using PostgreSQL database (production mode)")

    engine = create_engine(url, **engine_kwargs)

    if url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            """Enforce referential integrity and wait on locks."""
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory used for every unit of work.

    expire_on_commit is off so rows returned from a committed scope stay
    readable after the session closes.
    """
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """Context manager for database sessions.

    Usage:
        with session_scope(factory) as db:
            cert = db.get(Certificate, cert_id)

    The session is committed on success and rolled back on exception.
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


def init_database(engine: Engine) -> None:
    """Create all tables (CREATE IF NOT EXISTS).

    For file-backed SQLite, also ensures the database directory exists.
    """
    url = str(engine.url)
    log.info(f"Initializing database at {url.split('@')[-1] if '@' in url else url}")

    if url.startswith("sqlite:///"):
        db_path = url.replace("sqlite:///", "")
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    Base.metadata.create_all(bind=engine)
    log.info("Database tables created successfully")
