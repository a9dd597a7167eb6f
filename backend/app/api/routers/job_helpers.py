"""Shared helpers for looking up and shaping jobs in routers."""
from __future__ import annotations

import uuid

from fastapi import HTTPException, status
from pydantic import ValidationError

from app.api.schemas.job import JobProgress
from app.db.models.import_job import ImportJob
from app.db.stores import JobStore
from app.services.progress_tracker import ProgressCache


def ensure_valid_job_id(job_id: str) -> str:
    """Reject ids that cannot belong to any job before touching the database."""
    try:
        return str(uuid.UUID(job_id))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid job id"
        ) from None


def load_job(job_store: JobStore, job_id: str) -> ImportJob:
    job = job_store.get(ensure_valid_job_id(job_id))
    if not job:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
    return job


def cached_progress(cache: ProgressCache | None, job_id: str) -> JobProgress | None:
    """Latest snapshot from Redis, if the cache is enabled and holds a valid one."""
    if cache is None:
        return None
    payload = cache.fetch(job_id)
    if not payload:
        return None
    try:
        snapshot = JobProgress.model_validate(payload)
    except ValidationError:
        return None
    return snapshot if snapshot.job_id == job_id else None
