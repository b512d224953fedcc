"""
Attachment pipeline data models.

Pydantic models for queue entries, attachments and analysis results.
"""

# Analysis models
from attachment_pipeline.models.analysis import (
    AnalysisQuality,
    AnalysisResult,
    DetectedIssue,
    DetectedObject,
    ExtractedText,
    IssueSeverity,
)

# Attachment models
from attachment_pipeline.models.attachment import (
    Attachment,
    AttachmentCategory,
    AttachmentSource,
    ProcessingStatus,
)

# Queue models
from attachment_pipeline.models.queue import (
    QueueEntry,
    QueuePriority,
    QueueStats,
    QueueStatus,
)

# Request payloads
from attachment_pipeline.models.task import EnqueueRequest

__all__ = [
    # Analysis models
    "AnalysisQuality",
    "AnalysisResult",
    "DetectedIssue",
    "DetectedObject",
    "ExtractedText",
    "IssueSeverity",
    # Attachment models
    "Attachment",
    "AttachmentCategory",
    "AttachmentSource",
    "ProcessingStatus",
    # Queue models
    "QueueEntry",
    "QueuePriority",
    "QueueStats",
    "QueueStatus",
    # Request payloads
    "EnqueueRequest",
]
