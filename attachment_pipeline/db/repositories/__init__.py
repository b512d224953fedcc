"""
Repository implementations for the attachment pipeline database.

Repositories provide a clean interface for database CRUD operations,
encapsulating SQLAlchemy queries and Pydantic model conversions.
"""

from attachment_pipeline.db.repositories.analysis import AnalysisRepository
from attachment_pipeline.db.repositories.attachment import AttachmentRepository
from attachment_pipeline.db.repositories.queue import QueueRepository

__all__ = [
    "AnalysisRepository",
    "AttachmentRepository",
    "QueueRepository",
]
