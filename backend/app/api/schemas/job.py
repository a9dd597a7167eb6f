"""Job progress payloads shared by the HTTP API, the SSE stream and the worker."""

from datetime import datetime
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.db.models.import_job import ImportJob

RowValue = Union[str, int, float, bool, None]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RowError(CamelModel):
    """One rejected row; row_number 0 marks a job-level (fatal) error."""

    row_number: int = Field(..., ge=0)
    message: str
    row: dict[str, RowValue] | None = None


class JobProgress(CamelModel):
    job_id: str
    filename: str
    status: str = Field(..., description="pending|processing|completed|failed")
    total_rows: int = 0
    processed_rows: int = 0
    success_count: int = 0
    failed_count: int = 0
    error_count: int = Field(0, description="Retained row errors, not failed_count")
    created_at: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    last_error: str | None = None

    @classmethod
    def from_job(cls, job: ImportJob) -> "JobProgress":
        return cls(
            job_id=job.id,
            filename=job.filename,
            status=job.status,
            total_rows=job.total_rows or 0,
            processed_rows=job.processed_rows or 0,
            success_count=job.success_count or 0,
            failed_count=job.failed_count or 0,
            error_count=len(job.errors or []),
            created_at=job.created_at,
            started_at=job.started_at,
            completed_at=job.completed_at,
            last_error=job.last_error,
        )

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready camelCase dict for SSE frames and the Redis cache."""
        return self.model_dump(mode="json", by_alias=True)


class JobDetail(JobProgress):
    errors: list[RowError] = Field(default_factory=list)

    @classmethod
    def from_job(cls, job: ImportJob) -> "JobDetail":
        progress = JobProgress.from_job(job)
        return cls(
            **progress.model_dump(),
            errors=[RowError.model_validate(error) for error in job.errors or []],
        )


class UploadAccepted(CamelModel):
    job_id: str
    status: str
