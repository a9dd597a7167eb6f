"""Job and customer stores used by the import pipeline.

Each call opens its own short-lived session so the stores can be driven from
worker threads. Returned ORM objects are detached but fully loaded.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.db.models.customer import Customer
from app.db.models.import_job import PENDING, ImportJob

logger = logging.getLogger(__name__)


class RecordStoreError(Exception):
    """A customer row could not be persisted."""


class DuplicateKeyError(RecordStoreError):
    """The customer email is already taken."""


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = exc.orig
    # psycopg exposes the SQLSTATE; sqlite only has the message.
    if getattr(orig, "sqlstate", None) == "23505":
        return True
    return "unique" in str(orig).lower()


class JobStore:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def create(self, filename: str, uploaded_file_path: str | None = None) -> ImportJob:
        """Insert a pending job with zeroed counters."""
        job = ImportJob(
            filename=filename,
            uploaded_file_path=uploaded_file_path,
            status=PENDING,
            total_rows=0,
            processed_rows=0,
            success_count=0,
            failed_count=0,
            errors=[],
        )
        with self._session_factory() as session:
            session.add(job)
            session.commit()
        return job

    def get(self, job_id: str) -> ImportJob | None:
        with self._session_factory() as session:
            return session.get(ImportJob, job_id)

    def save(self, job: ImportJob) -> ImportJob:
        """Write every attribute of a detached job back to the database."""
        with self._session_factory() as session:
            merged = session.merge(job)
            session.commit()
            return merged

    def list_recent(self, limit: int = 50, status: str | None = None) -> Sequence[ImportJob]:
        """Return jobs newest first, optionally filtered by status."""
        query = select(ImportJob)
        if status:
            query = query.where(ImportJob.status == status)
        query = query.order_by(ImportJob.created_at.desc()).limit(limit)
        with self._session_factory() as session:
            return session.scalars(query).all()


class CustomerStore:
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def create(
        self,
        *,
        name: str,
        email: str,
        company: str,
        job_id: str,
        phone: str | None = None,
    ) -> Customer:
        """Insert one customer.

        Raises:
            DuplicateKeyError: the email is already stored (case-insensitive).
            RecordStoreError: any other persistence failure.
        """
        customer = Customer(name=name, email=email, phone=phone, company=company, job_id=job_id)
        with self._session_factory() as session:
            session.add(customer)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                if _is_unique_violation(exc):
                    raise DuplicateKeyError(f"email {email!r} already exists") from exc
                raise RecordStoreError(f"Integrity error inserting customer: {exc.orig}") from exc
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error(f"Database error inserting customer: {exc}", exc_info=True)
                raise RecordStoreError(f"Database error inserting customer: {exc}") from exc
        return customer

    def list(
        self,
        *,
        job_id: str | None = None,
        email: str | None = None,
        company: str | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[Sequence[Customer], int]:
        """Return one page of customers (newest first) and the total match count."""
        filters = []
        if job_id:
            filters.append(Customer.job_id == job_id)
        if email:
            filters.append(func.lower(Customer.email).contains(email.lower()))
        if company:
            filters.append(Customer.company.ilike(f"%{company}%"))

        query = (
            select(Customer)
            .where(*filters)
            .order_by(Customer.created_at.desc(), Customer.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        count_query = select(func.count(Customer.id)).where(*filters)
        with self._session_factory() as session:
            total = session.scalar(count_query) or 0
            return session.scalars(query).all(), total
