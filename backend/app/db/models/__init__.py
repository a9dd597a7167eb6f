"""Database models package."""
from app.db.models.customer import Customer
from app.db.models.import_job import ImportJob

__all__ = ["Customer", "ImportJob"]
