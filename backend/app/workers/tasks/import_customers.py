"""Import worker: stream one staged CSV into customers and report progress."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

from app.api.schemas.job import JobProgress, RowError, RowValue
from app.db.models.import_job import COMPLETED, FAILED, PROCESSING, ImportJob, utcnow
from app.db.stores import CustomerStore, DuplicateKeyError, JobStore, RecordStoreError
from app.services import csv_ingest
from app.services.progress_broadcaster import DONE_EVENT, PROGRESS_EVENT, ProgressBroadcaster
from app.services.progress_tracker import ProgressCache
from app.storage.uploads import delete_upload
from app.utils.csv_validator import RowValidation, validate_row
from app.workers.job_queue import QueueTask

logger = logging.getLogger(__name__)

DEFAULT_FLUSH_EVERY = 25
DEFAULT_MAX_ERRORS = 50

DUPLICATE_EMAIL_MESSAGE = "email must be unique"
INSERT_FAILED_MESSAGE = "failed to insert customer"
FATAL_FALLBACK_MESSAGE = "job failed unexpectedly"


@dataclass
class ImportProgress:
    """Running counters for one import; copied onto the job at each flush."""

    max_errors: int = DEFAULT_MAX_ERRORS
    total_rows: int = 0
    processed_rows: int = 0
    success_count: int = 0
    failed_count: int = 0
    errors: list[RowError] = field(default_factory=list)
    last_error: str | None = None

    def record_success(self) -> None:
        self.success_count += 1
        self.processed_rows += 1

    def record_failure(
        self, row_number: int, message: str, row: dict[str, RowValue] | None
    ) -> None:
        self.failed_count += 1
        self.processed_rows += 1
        self.last_error = message
        if len(self.errors) < self.max_errors:
            self.errors.append(RowError(row_number=row_number, message=message, row=row))

    def record_fatal(self, message: str) -> None:
        # Job-level errors bypass the retention cap; there is at most one.
        self.last_error = message
        self.errors.append(RowError(row_number=0, message=message))

    def apply_to(self, job: ImportJob) -> None:
        job.total_rows = self.total_rows
        job.processed_rows = self.processed_rows
        job.success_count = self.success_count
        job.failed_count = self.failed_count
        job.errors = [error.model_dump() for error in self.errors]
        job.last_error = self.last_error


class CustomerImporter:
    """Process one file into customers plus a terminal job state.

    Rows are handled strictly one after another; file reads and store calls
    run in a worker thread and are the points where other coroutines get to
    run. Only one importer may work on a given job at a time, which the job
    queue guarantees.
    """

    def __init__(
        self,
        job_store: JobStore,
        customer_store: CustomerStore,
        broadcaster: ProgressBroadcaster,
        progress_cache: ProgressCache | None = None,
        *,
        flush_every: int = DEFAULT_FLUSH_EVERY,
        max_errors: int = DEFAULT_MAX_ERRORS,
    ) -> None:
        if flush_every < 1:
            raise ValueError("flush_every must be at least 1")
        self._job_store = job_store
        self._customer_store = customer_store
        self._broadcaster = broadcaster
        self._progress_cache = progress_cache
        self._flush_every = flush_every
        self._max_errors = max_errors

    async def handle(self, task: QueueTask) -> None:
        await self.run(task.job_id, task.file_path)

    async def run(self, job_id: str, file_path: str | Path) -> None:
        """Import ``file_path`` for ``job_id``; the file is always deleted afterwards."""
        path = Path(file_path)
        try:
            job = await asyncio.to_thread(self._job_store.get, job_id)
            if job is None:
                logger.warning(f"Import job {job_id} not found; discarding {path}")
                return
            await self._execute(job, path)
        finally:
            if delete_upload(path):
                logger.info(f"Cleaned up staged upload: {path}")

    async def _execute(self, job: ImportJob, file_path: Path) -> None:
        job_id = job.id
        progress = ImportProgress(max_errors=self._max_errors)
        final_status = COMPLETED

        try:
            await self._start(job)

            progress.total_rows = await asyncio.to_thread(csv_ingest.count_rows, file_path)
            await self._flush(job, progress)
            logger.info(f"Job {job_id}: {progress.total_rows} data rows in {job.filename}")

            await self._process_rows(job, file_path, progress)
        except Exception as exc:
            final_status = FAILED
            if isinstance(exc, csv_ingest.CsvReadError):
                message = str(exc) or FATAL_FALLBACK_MESSAGE
            else:
                # Infrastructure detail stays in the log, not on the job.
                message = FATAL_FALLBACK_MESSAGE
            logger.error(f"Import job {job_id} failed: {exc}", exc_info=True)
            progress.record_fatal(message)

        try:
            job.status = final_status
            job.completed_at = utcnow()
            await self._flush(job, progress)
        finally:
            self._broadcaster.publish_and_close(
                job_id, DONE_EVENT, {"jobId": job_id, "status": final_status}
            )

        logger.info(
            f"Import job {job_id} {final_status}: {progress.processed_rows}/{progress.total_rows} rows, "
            f"{progress.success_count} inserted, {progress.failed_count} failed"
        )

    async def _start(self, job: ImportJob) -> None:
        job.status = PROCESSING
        job.started_at = utcnow()
        job.completed_at = None
        job.total_rows = 0
        job.processed_rows = 0
        job.success_count = 0
        job.failed_count = 0
        job.errors = []
        job.last_error = None
        await asyncio.to_thread(self._job_store.save, job)
        self._publish(job)

    async def _process_rows(
        self, job: ImportJob, file_path: Path, progress: ImportProgress
    ) -> None:
        rows = csv_ingest.iter_rows(file_path)
        try:
            while True:
                # File reads happen off the event loop, one row at a time.
                item = await asyncio.to_thread(next, rows, None)
                if item is None:
                    break
                row_number, raw = item
                result = validate_row(raw)
                if result.ok:
                    await self._insert(job.id, row_number, result, progress)
                else:
                    logger.debug(f"Job {job.id} row {row_number} rejected: {result.message}")
                    progress.record_failure(row_number, result.message, result.row)

                if progress.processed_rows % self._flush_every == 0:
                    await self._flush(job, progress)
        finally:
            rows.close()

    async def _insert(
        self, job_id: str, row_number: int, result: RowValidation, progress: ImportProgress
    ) -> None:
        record = result.record
        try:
            await asyncio.to_thread(
                self._customer_store.create,
                name=record.name,
                email=record.email,
                phone=record.phone,
                company=record.company,
                job_id=job_id,
            )
        except DuplicateKeyError:
            progress.record_failure(row_number, DUPLICATE_EMAIL_MESSAGE, result.row)
        except RecordStoreError as e:
            logger.warning(f"Job {job_id} row {row_number}: {e}")
            progress.record_failure(row_number, INSERT_FAILED_MESSAGE, result.row)
        else:
            progress.record_success()

    async def _flush(self, job: ImportJob, progress: ImportProgress) -> None:
        progress.apply_to(job)
        await asyncio.to_thread(self._job_store.save, job)
        self._publish(job)

    def _publish(self, job: ImportJob) -> None:
        payload = JobProgress.from_job(job).to_payload()
        self._broadcaster.publish(job.id, PROGRESS_EVENT, payload)
        if self._progress_cache is not None:
            self._progress_cache.store(job.id, payload)
