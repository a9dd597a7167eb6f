"""Render a job's retained row errors as a downloadable CSV."""

from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass
from typing import Iterable

from app.api.schemas.job import RowError
from app.db.stores import JobStore

ERROR_REPORT_HEADER = ["rowNumber", "name", "email", "phone", "company", "error"]
ERROR_REPORT_MEDIA_TYPE = "text/csv"
DEFAULT_REPORT_BASE = "job"

_EXTENSION = re.compile(r"\.[^.]+$")
_NON_WORD = re.compile(r"\W+", re.ASCII)


@dataclass(frozen=True)
class ErrorReport:
    filename: str
    content: str
    error_count: int


def report_filename(source_filename: str | None) -> str:
    """``Customers (May).csv`` -> ``Customers_May__errors.csv``."""
    base = _EXTENSION.sub("", source_filename or "")
    safe = _NON_WORD.sub("_", base)
    if not safe.strip("_"):
        safe = DEFAULT_REPORT_BASE
    return f"{safe}_errors.csv"


def _cell(value: object) -> str:
    if isinstance(value, bool) or value is None:
        return ""
    if isinstance(value, (str, int, float)):
        return str(value)
    return ""


def render_error_csv(errors: Iterable[RowError]) -> str:
    """Header plus one line per error, ordered by row number.

    Fields containing quotes, commas or line breaks are quoted with inner
    quotes doubled.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(ERROR_REPORT_HEADER)
    for error in sorted(errors, key=lambda item: item.row_number):
        row = error.row or {}
        writer.writerow(
            [
                str(error.row_number),
                _cell(row.get("name")),
                _cell(row.get("email")),
                _cell(row.get("phone")),
                _cell(row.get("company")),
                error.message,
            ]
        )
    return buffer.getvalue()


def build_error_report(job_store: JobStore, job_id: str) -> ErrorReport | None:
    """Return the report for ``job_id``, or ``None`` when the job does not exist."""
    job = job_store.get(job_id)
    if job is None:
        return None
    errors = [RowError.model_validate(item) for item in job.errors or []]
    return ErrorReport(
        filename=report_filename(job.filename),
        content=render_error_csv(errors),
        error_count=len(errors),
    )
