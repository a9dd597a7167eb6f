"""Endpoints for CSV upload orchestration and tracking."""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import (
    APIRouter,
    Depends,
    File,
    HTTPException,
    UploadFile,
    status,
)
from sqlalchemy.exc import SQLAlchemyError

from app.api.dependencies.db import get_runtime
from app.api.routers.job_helpers import cached_progress, ensure_valid_job_id, load_job
from app.api.schemas.job import JobProgress, UploadAccepted
from app.services.import_runtime import ImportRuntime
from app.storage.uploads import UploadTooLarge, delete_upload, save_upload

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/",
    summary="Start a CSV import job",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=UploadAccepted,
)
async def enqueue_import(
    file: UploadFile | None = File(None),
    runtime: ImportRuntime = Depends(get_runtime),
) -> UploadAccepted:
    """Stage the CSV, create a pending job and return its id before processing starts."""
    if file is None or not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="CSV file is required (field name: file)",
        )
    if Path(file.filename).suffix.lower() != ".csv":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only .csv files are allowed",
        )

    settings = runtime.settings
    try:
        staged_path = save_upload(
            file.file,
            settings.uploads_dir,
            file.filename,
            max_bytes=settings.max_upload_bytes,
        )
    except UploadTooLarge as exc:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=str(exc),
        ) from exc
    except OSError as exc:
        logger.error(f"OS error staging file: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save uploaded file",
        ) from exc

    try:
        job = runtime.submit(staged_path, file.filename)
    except SQLAlchemyError as exc:
        logger.error(f"Database error creating import job: {exc}", exc_info=True)
        delete_upload(staged_path)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create import job",
        ) from exc

    return UploadAccepted(job_id=job.id, status=job.status)


@router.get(
    "/{job_id}/status",
    summary="Check import progress",
    response_model=JobProgress,
)
async def get_import_status(
    job_id: str,
    runtime: ImportRuntime = Depends(get_runtime),
) -> JobProgress:
    """Latest progress snapshot; served from Redis when cached, else from the database."""
    job_id = ensure_valid_job_id(job_id)
    snapshot = cached_progress(runtime.progress_cache, job_id)
    if snapshot is not None:
        return snapshot

    try:
        job = load_job(runtime.job_store, job_id)
    except SQLAlchemyError as exc:
        logger.error(f"Database error fetching job status {job_id}: {exc}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve job status",
        ) from exc
    return JobProgress.from_job(job)
