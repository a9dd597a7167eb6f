"""Read-only listing of imported customers."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError

from app.api.dependencies.db import get_runtime
from app.api.schemas.customer import CustomerListResponse, CustomerRead
from app.services.import_runtime import ImportRuntime

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/",
    summary="List customers with filters and pagination",
    response_model=CustomerListResponse,
)
async def list_customers(
    job_id: str | None = Query(None, alias="jobId", description="Only customers created by this job"),
    email: str | None = Query(None, description="Filter by email (case-insensitive, partial match)"),
    company: str | None = Query(None, description="Filter by company (partial match)"),
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    page_size: int = Query(50, ge=1, le=500, alias="pageSize", description="Items per page"),
    runtime: ImportRuntime = Depends(get_runtime),
) -> CustomerListResponse:
    """Return paginated customers, newest first. Filters are combined with AND logic."""
    try:
        customers, total = runtime.customer_store.list(
            job_id=job_id,
            email=email,
            company=company,
            page=page,
            page_size=page_size,
        )
    except SQLAlchemyError as e:
        logger.error(f"Database error listing customers: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve customers",
        ) from e

    return CustomerListResponse(
        items=[CustomerRead.model_validate(customer) for customer in customers],
        total=total,
        page=page,
        page_size=page_size,
    )
