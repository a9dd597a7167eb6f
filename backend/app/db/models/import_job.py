"""Track CSV import jobs: lifecycle, counters and retained row errors."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import DateTime

from app.db.base import Base

PENDING = "pending"
PROCESSING = "processing"
COMPLETED = "completed"
FAILED = "failed"

JOB_STATUSES = (PENDING, PROCESSING, COMPLETED, FAILED)
TERMINAL_STATUSES = frozenset({COMPLETED, FAILED})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_terminal(status: str | None) -> bool:
    return status in TERMINAL_STATUSES


class ImportJob(Base):
    __tablename__ = "import_jobs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    filename = Column(Text, nullable=False)
    uploaded_file_path = Column(Text)
    status = Column(String(32), nullable=False, default=PENDING, index=True)
    total_rows = Column(Integer, nullable=False, default=0)
    processed_rows = Column(Integer, nullable=False, default=0)
    success_count = Column(Integer, nullable=False, default=0)
    failed_count = Column(Integer, nullable=False, default=0)
    # [{"row_number": int, "message": str, "row": {...} | None}, ...]
    errors = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list)
    last_error = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    started_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
