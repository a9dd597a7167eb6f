"""Engine and session factory configuration."""

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from app.db.base import Base

logger = logging.getLogger(__name__)


def create_db_engine(database_url: str) -> Engine:
    """Build an engine tuned for the long-running import worker.

    SQLite (tests, local runs) is shared between the event loop thread and
    the store worker threads, so same-thread checking is disabled.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
        )

    # pool_pre_ping: Test connections before using (handles stale connections)
    # pool_recycle: Recycle connections after 30 minutes (prevents timeout)
    return create_engine(
        database_url,
        echo=False,
        future=True,
        poolclass=QueuePool,
        pool_pre_ping=True,
        pool_recycle=1800,
        pool_size=5,
        max_overflow=10,
        connect_args={
            "connect_timeout": 10,
            "keepalives": 1,
            "keepalives_idle": 30,
            "keepalives_interval": 10,
            "keepalives_count": 5,
        },
    )


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    # Stores hand ORM objects across threads and sessions, so keep them loaded.
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create missing tables for every registered model."""
    import app.db.models  # noqa: F401

    Base.metadata.create_all(engine)
    logger.info(f"Database schema ready on {engine.url.render_as_string(hide_password=True)}")

