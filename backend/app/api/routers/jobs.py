"""Import job endpoints: listing, detail, live progress stream and error report."""
from __future__ import annotations

import logging
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.responses import StreamingResponse
from sqlalchemy.exc import SQLAlchemyError

from app.api.dependencies.db import get_runtime
from app.api.routers.job_helpers import ensure_valid_job_id, load_job
from app.api.schemas.job import JobDetail, JobProgress
from app.db.models.import_job import JOB_STATUSES, is_terminal
from app.services.error_report import ERROR_REPORT_MEDIA_TYPE, build_error_report
from app.services.import_runtime import ImportRuntime
from app.services.progress_broadcaster import PROGRESS_EVENT, SSEObserver

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/",
    summary="List import jobs",
    response_model=list[JobProgress],
)
async def list_jobs(
    limit: int = Query(50, ge=1, le=500, description="Maximum number of jobs to return"),
    status: str | None = Query(None, description="Filter by status (pending, processing, completed, failed)"),
    runtime: ImportRuntime = Depends(get_runtime),
) -> list[JobProgress]:
    """Return import jobs newest first, optionally filtered by status."""
    if status and status not in JOB_STATUSES:
        raise HTTPException(status_code=400, detail=f"Unknown status: {status}")
    try:
        jobs = runtime.job_store.list_recent(limit=limit, status=status)
    except SQLAlchemyError as e:
        logger.error(f"Database error listing jobs: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to retrieve jobs") from e
    return [JobProgress.from_job(job) for job in jobs]


@router.get(
    "/{job_id}",
    summary="Fetch job metadata and retained row errors",
    response_model=JobDetail,
)
async def get_job(
    job_id: str,
    runtime: ImportRuntime = Depends(get_runtime),
) -> JobDetail:
    return JobDetail.from_job(load_job(runtime.job_store, job_id))


@router.get(
    "/{job_id}/error-report",
    summary="Download rejected rows as CSV",
)
async def download_error_report(
    job_id: str,
    runtime: ImportRuntime = Depends(get_runtime),
) -> Response:
    report = build_error_report(runtime.job_store, ensure_valid_job_id(job_id))
    if report is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return Response(
        content=report.content,
        media_type=ERROR_REPORT_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{report.filename}"'},
    )


@router.get(
    "/{job_id}/stream",
    summary="Server-Sent Events stream for real-time progress",
)
async def stream_job_progress(
    job_id: str,
    runtime: ImportRuntime = Depends(get_runtime),
) -> StreamingResponse:
    """Stream job progress via Server-Sent Events (SSE).

    Events are ``progress`` (a job snapshot) and a final ``done`` carrying
    ``{jobId, status}``, after which the server closes the stream. A job that
    has already finished gets only the ``done`` event.

    Example client usage:
    ```javascript
    const source = new EventSource('/api/jobs/{job_id}/stream');
    source.addEventListener('progress', (e) => render(JSON.parse(e.data)));
    source.addEventListener('done', () => source.close());
    ```
    """
    job = load_job(runtime.job_store, job_id)
    job_id = job.id
    settings = runtime.settings
    broadcaster = runtime.broadcaster

    observer = SSEObserver(max_buffered=settings.observer_buffer_size)
    if not is_terminal(job.status):
        observer.send(PROGRESS_EVENT, JobProgress.from_job(job).to_payload())
    broadcaster.attach(job_id, observer, status=job.status)

    async def event_generator() -> AsyncGenerator[str, None]:
        """Yield SSE frames until the job finishes or the client goes away."""
        try:
            # Reconnect hint for EventSource (ms)
            yield f"retry: {settings.sse_retry_ms}\n\n"
            async for frame in observer.frames(settings.sse_keepalive_seconds):
                yield frame
        finally:
            broadcaster.detach(job_id, observer)
            observer.close()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache, no-transform",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
