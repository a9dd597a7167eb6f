"""
Pytest configuration and shared fixtures: SQLite-backed stores, CSV writer,
and an in-memory observer that records what it is sent.
"""

from pathlib import Path
from typing import Any

import pytest

from app.core.config import Settings
from app.db.session import create_db_engine, create_session_factory, init_db
from app.db.stores import CustomerStore, JobStore
from app.services.progress_broadcaster import ObserverGone, ProgressBroadcaster

CSV_HEADER = "name,email,phone,company\n"


class RecordingObserver:
    """Observer double; ``fail_sends`` makes every send raise like a dead socket."""

    def __init__(self, fail_sends: bool = False) -> None:
        self.events: list[tuple[str, Any]] = []
        self.closed = False
        self.fail_sends = fail_sends

    def send(self, event: str, data: Any) -> None:
        if self.fail_sends:
            raise ObserverGone("connection reset")
        self.events.append((event, data))

    def close(self) -> None:
        self.closed = True

    def kinds(self) -> list[str]:
        return [event for event, _ in self.events]

    def payloads(self, kind: str) -> list[Any]:
        return [data for event, data in self.events if event == kind]


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a throwaway SQLite file and uploads dir, no Redis."""
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'importer.db'}",
        uploads_dir=str(tmp_path / "uploads"),
        progress_cache_enabled=False,
        progress_flush_every=2,
        sse_keepalive_seconds=0.5,
        log_level="DEBUG",
    )


@pytest.fixture
def engine(settings):
    engine = create_db_engine(settings.database_url)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def job_store(session_factory):
    return JobStore(session_factory)


@pytest.fixture
def customer_store(session_factory):
    return CustomerStore(session_factory)


@pytest.fixture
def broadcaster():
    return ProgressBroadcaster()


@pytest.fixture
def write_csv(settings):
    """Write CSV text into the uploads dir and return its path."""

    def _write(content: str, name: str = "customers.csv") -> Path:
        path = Path(settings.uploads_dir) / name
        path.write_text(content, encoding="utf-8", newline="")
        return path

    return _write


def csv_text(*rows: str, header: str = CSV_HEADER) -> str:
    return header + "".join(f"{row}\n" for row in rows)
