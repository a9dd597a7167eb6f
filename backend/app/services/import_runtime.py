"""Process-wide import machinery, owned by one object and passed explicitly."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import Settings
from app.db.models.import_job import ImportJob
from app.db.session import create_db_engine, create_session_factory, init_db
from app.db.stores import CustomerStore, JobStore
from app.services.progress_broadcaster import ProgressBroadcaster
from app.services.progress_tracker import ProgressCache
from app.workers.job_queue import InMemoryJobQueue, QueueTask
from app.workers.tasks.import_customers import CustomerImporter

logger = logging.getLogger(__name__)


@dataclass
class ImportRuntime:
    settings: Settings
    engine: Engine
    session_factory: sessionmaker[Session]
    job_store: JobStore
    customer_store: CustomerStore
    broadcaster: ProgressBroadcaster
    importer: CustomerImporter
    queue: InMemoryJobQueue
    progress_cache: ProgressCache | None = None

    def submit(self, file_path: Path, filename: str) -> ImportJob:
        """Create a pending job for a staged file and queue it; returns immediately."""
        job = self.job_store.create(filename, uploaded_file_path=str(file_path))
        self.queue.enqueue(QueueTask(job_id=job.id, file_path=file_path))
        logger.info(f"Created import job {job.id} for file {filename}")
        return job

    async def startup(self) -> None:
        await asyncio.to_thread(init_db, self.engine)
        self.queue.start()

    async def shutdown(self) -> None:
        await self.queue.stop()
        if self.progress_cache is not None:
            self.progress_cache.close()
        self.engine.dispose()


def build_runtime(settings: Settings) -> ImportRuntime:
    engine = create_db_engine(settings.database_url)
    session_factory = create_session_factory(engine)
    job_store = JobStore(session_factory)
    customer_store = CustomerStore(session_factory)
    broadcaster = ProgressBroadcaster()

    progress_cache = None
    if settings.progress_cache_enabled:
        progress_cache = ProgressCache.from_url(
            settings.redis_url, ttl_seconds=settings.progress_cache_ttl_seconds
        )

    importer = CustomerImporter(
        job_store,
        customer_store,
        broadcaster,
        progress_cache,
        flush_every=settings.progress_flush_every,
        max_errors=settings.max_error_records,
    )
    queue = InMemoryJobQueue(importer.handle)
    return ImportRuntime(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        job_store=job_store,
        customer_store=customer_store,
        broadcaster=broadcaster,
        importer=importer,
        queue=queue,
        progress_cache=progress_cache,
    )
