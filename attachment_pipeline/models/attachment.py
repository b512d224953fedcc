from datetime import datetime, timezone
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

IMAGE_TYPES = frozenset(
    {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp", "image/bmp"}
)
VIDEO_TYPES = frozenset(
    {"video/mp4", "video/avi", "video/mov", "video/wmv", "video/flv", "video/webm"}
)
DOCUMENT_TYPES = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "text/plain",
        "text/csv",
    }
)


class AttachmentSource(StrEnum):
    """Channel an attachment arrived through"""

    WHATSAPP = "whatsapp"
    WEB_UPLOAD = "web_upload"
    EMAIL = "email"
    API = "api"


class AttachmentCategory(StrEnum):
    """What an attachment shows"""

    EQUIPMENT_PHOTO = "equipment_photo"
    REPAIR_PHOTO = "repair_photo"
    ISSUE_PHOTO = "issue_photo"
    DOCUMENT = "document"
    VIDEO = "video"
    AUDIO = "audio"
    OTHER = "other"


class ProcessingStatus(StrEnum):
    """Analysis status of the attachment record itself"""

    PENDING = "pending"
    PROCESSING = "processing"
    PROCESSED = "processed"  # Analyzed by the queue workers
    COMPLETED = "completed"
    FAILED = "failed"


class Attachment(BaseModel):
    """
    File attached to a service ticket.

    Owned by the attachment service. The processing queue only reads it
    and reports analysis outcome through ``processing_status``.
    """

    # Identity
    id: str = Field(description="Attachment identifier (UUID)")
    ticket_id: Optional[str] = Field(
        default=None, description="Service ticket the file belongs to"
    )

    # File details
    filename: str = Field(description="Stored filename")
    original_filename: str = Field(default="", description="Uploaded filename")
    file_type: str = Field(description="MIME type")
    file_size_bytes: int = Field(default=0, ge=0, description="File size in bytes")
    storage_path: str = Field(description="Path of the stored file")

    # Provenance
    uploaded_by_id: Optional[str] = Field(default=None, description="Uploader ID")
    source: AttachmentSource = Field(
        default=AttachmentSource.WEB_UPLOAD, description="Upload channel"
    )
    source_message_id: Optional[str] = Field(
        default=None, description="Message ID for chat or email uploads"
    )
    category: AttachmentCategory = Field(
        default=AttachmentCategory.OTHER, description="Attachment category"
    )

    processing_status: ProcessingStatus = Field(
        default=ProcessingStatus.PENDING, description="Analysis status"
    )

    # Timestamps
    uploaded_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Upload time",
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Record creation time",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last update time",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "0d7b9c52-8d1e-4f77-b2b5-6f0f1f0c2a9e",
                "ticket_id": "TKT-1042",
                "filename": "0d7b9c52.jpg",
                "original_filename": "ventilator_front.jpg",
                "file_type": "image/jpeg",
                "file_size_bytes": 482113,
                "storage_path": "/data/attachments/TKT-1042/0d7b9c52.jpg",
                "source": "whatsapp",
                "category": "equipment_photo",
                "processing_status": "pending",
            }
        }
    )

    def is_image(self) -> bool:
        return self.file_type in IMAGE_TYPES

    def is_video(self) -> bool:
        return self.file_type in VIDEO_TYPES

    def is_document(self) -> bool:
        return self.file_type in DOCUMENT_TYPES

    def display_size(self) -> str:
        """Human-readable file size, e.g. ``"1.50 MB"``."""
        size = float(self.file_size_bytes)
        for unit in ("B", "KB", "MB", "GB"):
            if size < 1024.0:
                if unit == "B":
                    return f"{size:.0f} {unit}"
                return f"{size:.2f} {unit}"
            size /= 1024.0
        return f"{size:.2f} TB"
