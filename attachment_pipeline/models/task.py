"""
Request payloads accepted by the worker service endpoints.
"""

from pydantic import BaseModel, Field, field_validator
from uuid import UUID

from attachment_pipeline.models.queue import QueuePriority


class EnqueueRequest(BaseModel):
    """Queue an uploaded attachment for analysis"""

    attachment_id: str = Field(description="Attachment ID (UUID)")
    priority: QueuePriority = Field(
        default=QueuePriority.MEDIUM, description="Processing priority"
    )

    @field_validator("attachment_id")
    @classmethod
    def _valid_uuid(cls, value: str) -> str:
        return str(UUID(value))
