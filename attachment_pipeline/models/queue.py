from datetime import datetime, timezone
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class QueuePriority(StrEnum):
    """Priority tier of a queue entry.

    Tiers are a total order. Compare members with ``<``/``>`` (by urgency)
    or sort by ``rank``; never compare the raw string values.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        """Claim order of the tier: 1 is served first."""
        return _PRIORITY_RANKS[self]

    def __lt__(self, other):
        if not isinstance(other, QueuePriority):
            return NotImplemented
        return self.rank > other.rank

    def __le__(self, other):
        if not isinstance(other, QueuePriority):
            return NotImplemented
        return self.rank >= other.rank

    def __gt__(self, other):
        if not isinstance(other, QueuePriority):
            return NotImplemented
        return self.rank < other.rank

    def __ge__(self, other):
        if not isinstance(other, QueuePriority):
            return NotImplemented
        return self.rank <= other.rank


_PRIORITY_RANKS = {
    QueuePriority.URGENT: 1,
    QueuePriority.HIGH: 2,
    QueuePriority.MEDIUM: 3,
    QueuePriority.LOW: 4,
}


class QueueStatus(StrEnum):
    """Status of a queue entry"""

    PENDING = "pending"  # Waiting to be claimed by a worker
    PROCESSING = "processing"  # Claimed by a worker
    COMPLETED = "completed"  # Analysis succeeded
    FAILED = "failed"  # Analysis failed or claim went stale


class QueueEntry(BaseModel):
    """
    Scheduled unit of attachment analysis work.

    The queue owns these rows. ``attachment_id`` is only a lookup key for
    the attachment being analyzed.
    """

    # Identity
    id: str = Field(description="Queue entry identifier (UUID)")
    attachment_id: str = Field(description="Attachment to analyze (UUID)")

    # Scheduling
    status: QueueStatus = Field(
        default=QueueStatus.PENDING, description="Current entry status"
    )
    priority: QueuePriority = Field(
        default=QueuePriority.MEDIUM, description="Priority tier"
    )

    claim_token: Optional[str] = Field(
        default=None,
        description="Token of the latest claim; completion and failure must match it",
    )

    # Error tracking
    retry_count: int = Field(
        default=0, ge=0, description="Number of recorded failures"
    )
    error_message: Optional[str] = Field(
        default=None, description="Last failure message"
    )

    # Timing
    queued_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the entry was queued",
    )
    processed_at: Optional[datetime] = Field(
        default=None, description="When the entry completed or failed"
    )

    # Timestamps
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
                "id": "6f1c1f1e-3c55-4b7a-9a43-0c6a4e1f2b10",
                "attachment_id": "0d7b9c52-8d1e-4f77-b2b5-6f0f1f0c2a9e",
                "status": "processing",
                "priority": "high",
                "retry_count": 0,
                "queued_at": "2026-01-23T10:00:00Z",
                "created_at": "2026-01-23T10:00:00Z",
                "updated_at": "2026-01-23T10:00:05Z",
            }
        }
    )


class QueueStats(BaseModel):
    """Queue statistics for health and metrics endpoints."""

    pending_count: int = 0
    processing_count: int = 0
    completed_count: int = 0
    failed_count: int = 0
    avg_processing_time_seconds: float = Field(
        default=0.0,
        description="Average of processed_at - queued_at over finished entries",
    )

    @computed_field
    @property
    def total(self) -> int:
        return (
            self.pending_count
            + self.processing_count
            + self.completed_count
            + self.failed_count
        )
