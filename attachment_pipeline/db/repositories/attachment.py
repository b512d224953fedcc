"""
Attachment repository for database operations.

The attachment service owns these rows; the pipeline reads them and writes
processing_status only.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Table

from attachment_pipeline.db.repositories.base import BaseRepository
from attachment_pipeline.db.tables import attachments
from attachment_pipeline.models.attachment import (
    Attachment,
    AttachmentCategory,
    AttachmentSource,
    ProcessingStatus,
)


class AttachmentRepository(BaseRepository[Attachment]):
    """Repository for Attachment lookups and processing status updates."""

    @property
    def table(self) -> Table:
        return attachments

    def _row_to_model(self, row: Any) -> Attachment:
        """Convert database row to Attachment model."""
        return Attachment(
            id=str(row.id),
            ticket_id=row.ticket_id,
            filename=row.filename,
            original_filename=row.original_filename or "",
            file_type=row.file_type,
            file_size_bytes=row.file_size_bytes or 0,
            storage_path=row.storage_path,
            uploaded_by_id=row.uploaded_by_id,
            source=AttachmentSource(row.source),
            source_message_id=row.source_message_id,
            category=AttachmentCategory(row.attachment_category),
            processing_status=ProcessingStatus(row.processing_status),
            uploaded_at=row.uploaded_at,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _model_to_dict(self, model: Attachment) -> dict:
        """Convert Attachment model to database dict."""
        now = datetime.now(timezone.utc)
        return {
            "id": UUID(model.id) if model.id else uuid4(),
            "ticket_id": model.ticket_id,
            "filename": model.filename,
            "original_filename": model.original_filename,
            "file_type": model.file_type,
            "file_size_bytes": model.file_size_bytes,
            "storage_path": model.storage_path,
            "uploaded_by_id": model.uploaded_by_id,
            "source": model.source.value,
            "source_message_id": model.source_message_id,
            "attachment_category": model.category.value,
            "processing_status": model.processing_status.value,
            "uploaded_at": model.uploaded_at,
            "created_at": now,
            "updated_at": now,
        }

    def update_status(self, attachment_id: str | UUID, status: ProcessingStatus) -> bool:
        """
        Update only the processing status of an attachment.

        Returns:
            True if the attachment was updated
        """
        return self.update_by_id(
            attachment_id,
            processing_status=ProcessingStatus(status).value,
            updated_at=datetime.now(timezone.utc),
        )
