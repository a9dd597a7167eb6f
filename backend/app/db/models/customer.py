"""SQLAlchemy model for imported customer records."""

from sqlalchemy import Column, ForeignKey, Index, Integer, String, func
from sqlalchemy.types import DateTime

from app.db.base import Base
from app.db.models.import_job import utcnow


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(320), nullable=False)
    phone = Column(String(64))
    company = Column(String(255), nullable=False)
    job_id = Column(String(36), ForeignKey("import_jobs.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (Index("ix_customers_email_lower", func.lower(email), unique=True),)
