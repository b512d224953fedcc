"""
Collaborators the queue workers depend on.

Workers only know these contracts. Production wiring uses the SQL-backed
gateway and sink plus the Gemini vision analyzer; tests substitute fakes.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable
from uuid import UUID

from sqlalchemy.orm import Session

from attachment_pipeline.db.unit_of_work import UnitOfWork
from attachment_pipeline.exceptions import AttachmentNotFoundError
from attachment_pipeline.models.analysis import AnalysisResult
from attachment_pipeline.models.attachment import Attachment, ProcessingStatus

logger = logging.getLogger(__name__)


class Analyzer(ABC):
    """Performs the actual analysis of an attachment."""

    @abstractmethod
    async def process(self, attachment: Attachment) -> AnalysisResult:
        """
        Analyze one attachment.

        Raises:
            Exception: Any failure. Workers record every failure the same way.
        """


class AttachmentGateway(ABC):
    """Read access to attachments plus the processing status side channel."""

    @abstractmethod
    def get_by_id(self, attachment_id: str | UUID) -> Attachment:
        """Raises AttachmentNotFoundError for unknown IDs."""

    @abstractmethod
    def update_status(
        self, attachment_id: str | UUID, status: ProcessingStatus
    ) -> None: ...


class ResultSink(ABC):
    """Destination for successful analysis results."""

    @abstractmethod
    def store(self, result: AnalysisResult) -> None: ...


class SqlAttachmentGateway(AttachmentGateway):
    """AttachmentGateway over the attachments table."""

    def __init__(self, session_factory: Callable[[], Session] | None = None):
        self._session_factory = session_factory

    def get_by_id(self, attachment_id: str | UUID) -> Attachment:
        with UnitOfWork(self._session_factory) as uow:
            attachment = uow.attachments.get_by_id(attachment_id)

        if attachment is None:
            raise AttachmentNotFoundError(str(attachment_id))
        return attachment

    def update_status(
        self, attachment_id: str | UUID, status: ProcessingStatus
    ) -> None:
        with UnitOfWork(self._session_factory) as uow:
            updated = uow.attachments.update_status(attachment_id, status)
            uow.commit()

        if not updated:
            raise AttachmentNotFoundError(str(attachment_id))


class SqlResultSink(ResultSink):
    """ResultSink writing to ai_vision_analyses."""

    def __init__(self, session_factory: Callable[[], Session] | None = None):
        self._session_factory = session_factory

    def store(self, result: AnalysisResult) -> None:
        with UnitOfWork(self._session_factory) as uow:
            uow.analyses.create(result)
            uow.commit()

        logger.info(
            "Stored analysis for attachment %s",
            result.attachment_id,
            extra={
                "json_fields": {
                    "attachment_id": result.attachment_id,
                    "ai_model": result.ai_model,
                    "confidence": result.analysis_confidence,
                    "duration_ms": result.processing_duration_ms,
                }
            },
        )
