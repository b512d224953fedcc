"""
Attachment pipeline database module.

Provides database connection management and repositories for data persistence.
Uses SQLAlchemy Core with Cloud SQL Python Connector.
"""

from attachment_pipeline.db.connection import DatabaseConnection
from attachment_pipeline.db.unit_of_work import UnitOfWork

__all__ = ["DatabaseConnection", "UnitOfWork"]
