"""Pydantic models describing imported customers."""

from datetime import datetime

from pydantic import ConfigDict

from app.api.schemas.job import CamelModel


class CustomerRead(CamelModel):
    id: int
    name: str
    email: str
    phone: str | None = None
    company: str
    job_id: str
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class CustomerListResponse(CamelModel):
    items: list[CustomerRead]
    total: int
    page: int
    page_size: int
