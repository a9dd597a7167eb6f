"""Local staging area for uploaded CSV files awaiting import."""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import BinaryIO

logger = logging.getLogger(__name__)

COPY_CHUNK_BYTES = 1024 * 1024


class UploadTooLarge(ValueError):
    """The upload exceeded the configured size limit."""


def save_upload(
    file_obj: BinaryIO,
    uploads_dir: str | Path,
    original_name: str | None = None,
    max_bytes: int | None = None,
) -> Path:
    """Persist an uploaded CSV to local disk and return the absolute path.

    Raises:
        UploadTooLarge: more than ``max_bytes`` were received. Nothing is
            left on disk in that case.
    """
    directory = Path(uploads_dir).resolve()
    directory.mkdir(parents=True, exist_ok=True)
    suffix = Path(original_name or "upload.csv").suffix or ".csv"
    target_path = directory / f"{uuid.uuid4()}{suffix.lower()}"

    file_obj.seek(0)
    written = 0
    try:
        with target_path.open("wb") as destination:
            while chunk := file_obj.read(COPY_CHUNK_BYTES):
                written += len(chunk)
                if max_bytes is not None and written > max_bytes:
                    raise UploadTooLarge(f"File exceeds the {max_bytes} byte limit")
                destination.write(chunk)
    except BaseException:
        delete_upload(target_path)
        raise
    return target_path


def delete_upload(uri: str | Path) -> bool:
    """Remove a staged file; failures are logged, never raised."""
    path = Path(uri)
    if not path.is_absolute():
        path = path.resolve()
    try:
        path.unlink(missing_ok=True)
        return True
    except OSError as e:
        logger.warning(f"Failed to delete staged upload {path}: {e}")
        return False

