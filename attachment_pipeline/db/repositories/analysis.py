"""
AI vision analysis repository.

Stores analyzer output with the key metrics pulled out for querying.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Table, select

from attachment_pipeline.db.repositories.base import (
    BaseRepository,
    as_uuid,
    model_to_jsonb,
)
from attachment_pipeline.db.tables import ai_vision_analyses
from attachment_pipeline.models.analysis import AnalysisResult


class AnalysisRepository(BaseRepository[AnalysisResult]):
    """Repository for AnalysisResult records."""

    @property
    def table(self) -> Table:
        return ai_vision_analyses

    def _row_to_model(self, row: Any) -> AnalysisResult:
        """Convert database row to AnalysisResult model."""
        return AnalysisResult.model_validate(row.analysis_results)

    def _model_to_dict(self, model: AnalysisResult) -> dict:
        """Convert AnalysisResult model to database dict."""
        now = datetime.now(timezone.utc)
        return {
            "id": uuid4(),
            "attachment_id": as_uuid(model.attachment_id),
            "ticket_id": model.ticket_id,
            "ai_provider": model.ai_provider,
            "ai_model": model.ai_model,
            "analysis_results": model_to_jsonb(model),
            "analysis_confidence": model.analysis_confidence,
            "image_quality_score": model.image_quality_score,
            "analysis_quality": model.analysis_quality.value,
            "processing_duration_ms": model.processing_duration_ms,
            "status": "completed",
            "analyzed_at": model.analyzed_at,
            "created_at": now,
            "updated_at": now,
        }

    def get_by_attachment_id(self, attachment_id: str | UUID) -> AnalysisResult | None:
        """
        Get the most recent analysis of an attachment.

        Args:
            attachment_id: Attachment ID

        Returns:
            Latest AnalysisResult or None if the attachment was never analyzed
        """
        stmt = (
            select(self.table)
            .where(self.table.c.attachment_id == as_uuid(attachment_id))
            .order_by(self.table.c.analyzed_at.desc())
            .limit(1)
        )
        row = self.session.execute(stmt).fetchone()

        if row is None:
            return None

        return self._row_to_model(row)
