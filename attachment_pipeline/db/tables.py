"""
SQLAlchemy Table definitions for the attachment pipeline database.

These Table objects mirror the schema in migrations/001_processing_queue.sql.
Uses SQLAlchemy Core (not ORM) for flexibility with Pydantic models.
Column types are portable so the same tables run on SQLite in tests.
"""

from sqlalchemy import (
    JSON,
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB

metadata = MetaData()

JSONType = JSON().with_variant(JSONB(), "postgresql")

# =============================================================================
# TABLE: attachments
# =============================================================================

attachments = Table(
    "attachments",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("ticket_id", String(255)),
    Column("filename", String(255), nullable=False),
    Column("original_filename", String(255)),
    Column("file_type", String(100), nullable=False),
    Column("file_size_bytes", BigInteger, nullable=False, default=0),
    Column("storage_path", Text, nullable=False),
    Column("uploaded_by_id", String(255)),
    Column("source", String(20), nullable=False, default="web_upload"),
    Column("source_message_id", String(255)),
    Column("attachment_category", String(50), nullable=False, default="other"),
    Column("processing_status", String(20), nullable=False, default="pending"),
    Column("uploaded_at", DateTime(timezone=True), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

# =============================================================================
# TABLE: attachment_processing_queue
# =============================================================================

# attachment_id is a lookup key only, not a foreign key to attachments.
attachment_processing_queue = Table(
    "attachment_processing_queue",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("attachment_id", Uuid, nullable=False, index=True),
    Column("status", String(20), nullable=False, default="pending"),
    Column("priority", String(20), nullable=False, default="medium"),
    # Claim order of the priority tier (1 = urgent ... 4 = low)
    Column("priority_rank", Integer, nullable=False),
    Column("retry_count", Integer, nullable=False, default=0),
    # Fresh UUID per claim; completion and failure must present it
    Column("claim_token", Uuid),
    Column("error_message", Text),
    Column("queued_at", DateTime(timezone=True), nullable=False),
    Column("processed_at", DateTime(timezone=True)),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Index("ix_processing_queue_claim", "status", "priority_rank", "created_at"),
    Index("ix_processing_queue_stale", "status", "updated_at"),
)

# =============================================================================
# TABLE: ai_vision_analyses
# =============================================================================

ai_vision_analyses = Table(
    "ai_vision_analyses",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column(
        "attachment_id",
        Uuid,
        ForeignKey("attachments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("ticket_id", String(255)),
    Column("ai_provider", String(50), nullable=False),
    Column("ai_model", String(100)),
    # Full result (stored as JSON)
    Column("analysis_results", JSONType, nullable=False, default={}),
    # Key metrics extracted for quick querying
    Column("analysis_confidence", Numeric(4, 3)),
    Column("image_quality_score", Numeric(4, 3)),
    Column("analysis_quality", String(20)),
    Column("processing_duration_ms", Integer),
    Column("status", String(20), nullable=False, default="completed"),
    Column("analyzed_at", DateTime(timezone=True), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)
