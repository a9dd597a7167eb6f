"""Validate CSV headers and normalize/validate customer rows."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError


class ValidationError(ValueError):
    """Custom exception for CSV validation errors."""

    pass


REQUIRED_HEADERS = ["name", "email", "company"]
OPTIONAL_HEADERS = ["phone"]
ROW_FIELDS = ["name", "email", "phone", "company"]

# One message per failing field, in field order.
FIELD_MESSAGES = {
    "name": "name is required",
    "email": "invalid email",
    "phone": "invalid phone",
    "company": "company is required",
}


class CustomerRow(BaseModel):
    """A normalized, valid customer row."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: str = Field(min_length=1)
    email: str
    phone: str | None = None
    company: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        # Bare addresses only; a display-name form like "Bob <bob@acme.io>" is invalid.
        try:
            validate_email(v, check_deliverability=False)
        except EmailNotValidError as e:
            raise ValueError(str(e)) from e
        return v


@dataclass(frozen=True)
class RowValidation:
    """Outcome of validating one raw row.

    ``row`` is always the normalized payload, so it can be stored alongside
    the error and validated again with the same result.
    """

    row: dict[str, str | None]
    record: CustomerRow | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.record is not None

    @property
    def message(self) -> str:
        return ", ".join(self.errors)


def normalize_header(header: str | None) -> str:
    return (header or "").strip().lower()


def validate_headers(headers: list[str] | None) -> None:
    """Ensure CSV contains the required columns before processing."""
    if not headers:
        raise ValidationError(
            "CSV requires a header row with name,email,company columns"
        )
    normalized = [normalize_header(header) for header in headers]
    missing = [name for name in REQUIRED_HEADERS if name not in normalized]
    if missing:
        raise ValidationError(f"Missing required column(s): {', '.join(missing)}")


def normalize_row(row: Mapping[str, Any]) -> dict[str, str | None]:
    """Trim every field, lowercase the email and drop an empty phone."""

    def _clean(key: str) -> str:
        value = row.get(key)
        if value is None:
            return ""
        return str(value).strip()

    return {
        "name": _clean("name"),
        "email": _clean("email").lower(),
        "phone": _clean("phone") or None,
        "company": _clean("company"),
    }


def validate_row(row: Mapping[str, Any]) -> RowValidation:
    """Normalize then validate one row; never raises for bad data."""
    normalized = normalize_row(row)
    try:
        record = CustomerRow.model_validate(normalized)
    except PydanticValidationError as exc:
        failed = {str(error["loc"][0]) for error in exc.errors() if error["loc"]}
        errors = [FIELD_MESSAGES[name] for name in ROW_FIELDS if name in failed]
        return RowValidation(row=normalized, errors=errors or ["invalid row"])
    return RowValidation(row=normalized, record=record)
