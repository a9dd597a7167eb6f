"""Streaming CSV readers used by the import worker.

Both passes go through ``csv.DictReader`` so quoted fields containing
newlines are counted and yielded as a single row.
"""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from app.utils.csv_validator import ValidationError, normalize_header, validate_headers

logger = logging.getLogger(__name__)


class CsvReadError(ValueError):
    """The file cannot be read as a customer CSV; the whole job is lost."""


@contextmanager
def _open_reader(file_path: Path) -> Iterator[csv.DictReader]:
    try:
        with file_path.open("r", encoding="utf-8-sig", newline="") as handle:
            reader = csv.DictReader(handle)
            if not reader.fieldnames:
                raise CsvReadError("CSV file appears to be empty or invalid")
            try:
                validate_headers(reader.fieldnames)
            except ValidationError as e:
                raise CsvReadError(f"Invalid CSV headers: {str(e)}") from e
            reader.fieldnames = [normalize_header(name) for name in reader.fieldnames]
            yield reader
    except CsvReadError:
        raise
    except FileNotFoundError as e:
        raise CsvReadError(f"CSV file not found: {file_path}") from e
    except PermissionError as e:
        raise CsvReadError(f"Permission denied reading file: {file_path}") from e
    except UnicodeDecodeError as e:
        raise CsvReadError(f"File encoding error: {str(e)}") from e
    except csv.Error as e:
        raise CsvReadError(f"CSV parsing error: {str(e)}") from e
    except OSError as e:
        logger.error(f"OS error reading CSV {file_path}: {e}", exc_info=True)
        raise CsvReadError(f"Error reading CSV file: {str(e)}") from e


def count_rows(file_path: Path) -> int:
    """Return the total number of data rows in the CSV (excluding headers)."""
    with _open_reader(file_path) as reader:
        return sum(1 for _ in reader)


def iter_rows(file_path: Path) -> Iterator[tuple[int, dict[str, str | None]]]:
    """Yield ``(row_number, raw_row)`` in file order, numbering data rows from 1."""
    with _open_reader(file_path) as reader:
        for row_number, row in enumerate(reader, start=1):
            yield row_number, row
