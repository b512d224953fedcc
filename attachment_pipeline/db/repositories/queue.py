"""
Processing queue repository for database operations.

Handles queue entry creation, atomic claiming and status transitions.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Table, delete, func, select, update

from attachment_pipeline.db.repositories.base import BaseRepository, as_uuid
from attachment_pipeline.db.tables import attachment_processing_queue
from attachment_pipeline.exceptions import (
    InvalidTransitionError,
    QueueEntryNotFoundError,
    StaleClaimError,
)
from attachment_pipeline.models.queue import (
    QueueEntry,
    QueuePriority,
    QueueStats,
    QueueStatus,
)

logger = logging.getLogger(__name__)


class QueueRepository(BaseRepository[QueueEntry]):
    """Repository for processing queue entries with claim and retry management."""

    @property
    def table(self) -> Table:
        return attachment_processing_queue

    def _row_to_model(self, row: Any) -> QueueEntry:
        """Convert database row to QueueEntry model."""
        return QueueEntry(
            id=str(row.id),
            attachment_id=str(row.attachment_id),
            status=QueueStatus(row.status),
            priority=QueuePriority(row.priority),
            claim_token=str(row.claim_token) if row.claim_token else None,
            retry_count=row.retry_count or 0,
            error_message=row.error_message,
            queued_at=row.queued_at,
            processed_at=row.processed_at,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _model_to_dict(self, model: QueueEntry) -> dict:
        """Convert QueueEntry model to database dict."""
        now = datetime.now(timezone.utc)
        return {
            "id": UUID(model.id) if model.id else uuid4(),
            "attachment_id": UUID(model.attachment_id),
            "status": model.status.value,
            "priority": model.priority.value,
            "priority_rank": model.priority.rank,
            "retry_count": model.retry_count,
            "error_message": model.error_message,
            "queued_at": model.queued_at,
            "processed_at": model.processed_at,
            "created_at": now,
            "updated_at": now,
        }

    def enqueue(
        self, attachment_id: str | UUID, priority: QueuePriority
    ) -> QueueEntry:
        """
        Add an attachment to the processing queue.

        Args:
            attachment_id: Attachment to analyze
            priority: Priority tier

        Returns:
            The new pending entry
        """
        entry = QueueEntry(
            id=str(uuid4()),
            attachment_id=str(attachment_id),
            status=QueueStatus.PENDING,
            priority=QueuePriority(priority),
        )
        return self.create(entry)

    def claim_next(self) -> QueueEntry | None:
        """
        Atomically claim the next pending entry.

        Picks the oldest pending entry of the most urgent tier present and
        flips it to processing. The candidate row is locked with
        FOR UPDATE SKIP LOCKED, so concurrent callers on PostgreSQL move on to
        the next row instead of waiting. The flip only matches rows that are
        still pending; when it matches nothing another caller won the row and
        the next candidate is tried.

        Every claim stamps a new claim_token on the row. Completion and failure
        can be made conditional on it so a caller holding an older claim
        cannot settle a newer one.

        Returns:
            The claimed entry, or None if no entry is pending
        """
        pending = QueueStatus.PENDING.value
        candidate_stmt = (
            select(self.table.c.id)
            .where(self.table.c.status == pending)
            .order_by(
                self.table.c.priority_rank.asc(),
                self.table.c.created_at.asc(),
                self.table.c.id.asc(),
            )
            .limit(1)
            .with_for_update(skip_locked=True)
        )

        while True:
            entry_id = self.session.execute(candidate_stmt).scalar_one_or_none()
            if entry_id is None:
                return None

            now = datetime.now(timezone.utc)
            claim_stmt = (
                update(self.table)
                .where(self.table.c.id == entry_id, self.table.c.status == pending)
                .values(
                    status=QueueStatus.PROCESSING.value,
                    claim_token=uuid4(),
                    updated_at=now,
                )
                .returning(self.table)
            )
            row = self.session.execute(claim_stmt).fetchone()
            if row is not None:
                return self._row_to_model(row)

            logger.debug("Queue entry %s claimed concurrently, trying next", entry_id)

    def _transition_from_processing(
        self,
        entry_id: str | UUID,
        target: QueueStatus,
        claim_token: str | UUID | None,
        **values,
    ) -> None:
        conditions = [
            self.table.c.id == as_uuid(entry_id),
            self.table.c.status == QueueStatus.PROCESSING.value,
        ]
        if claim_token is not None:
            conditions.append(self.table.c.claim_token == as_uuid(claim_token))

        stmt = update(self.table).where(*conditions).values(status=target.value, **values)
        result = self.session.execute(stmt)
        if result.rowcount > 0:
            return

        current = self.get_by_id(entry_id)
        if current is None:
            raise QueueEntryNotFoundError(str(entry_id))
        if current.status == QueueStatus.PROCESSING:
            raise StaleClaimError(str(entry_id), target)
        raise InvalidTransitionError(str(entry_id), current.status, target)

    def mark_completed(
        self, entry_id: str | UUID, claim_token: str | UUID | None = None
    ) -> None:
        """
        Mark a claimed entry as completed.

        Args:
            entry_id: Queue entry ID
            claim_token: Token of the caller's claim; None skips the check

        Raises:
            QueueEntryNotFoundError: If the entry does not exist
            StaleClaimError: If the entry has been claimed again since
            InvalidTransitionError: If the entry is not processing
        """
        now = datetime.now(timezone.utc)
        self._transition_from_processing(
            entry_id,
            QueueStatus.COMPLETED,
            claim_token,
            processed_at=now,
            updated_at=now,
        )

    def mark_failed(
        self,
        entry_id: str | UUID,
        error_message: str,
        claim_token: str | UUID | None = None,
    ) -> None:
        """
        Mark a claimed entry as failed and count the failure.

        Args:
            entry_id: Queue entry ID
            error_message: Failure description
            claim_token: Token of the caller's claim; None skips the check

        Raises:
            QueueEntryNotFoundError: If the entry does not exist
            StaleClaimError: If the entry has been claimed again since
            InvalidTransitionError: If the entry is not processing
        """
        now = datetime.now(timezone.utc)
        self._transition_from_processing(
            entry_id,
            QueueStatus.FAILED,
            claim_token,
            error_message=error_message,
            retry_count=self.table.c.retry_count + 1,
            processed_at=now,
            updated_at=now,
        )

    def retry_failed(self, max_retries: int) -> int:
        """
        Requeue failed entries that still have retry budget.

        Args:
            max_retries: Entries with retry_count below this are requeued

        Returns:
            Number of entries moved back to pending
        """
        stmt = (
            update(self.table)
            .where(
                self.table.c.status == QueueStatus.FAILED.value,
                self.table.c.retry_count < max_retries,
            )
            .values(
                status=QueueStatus.PENDING.value,
                error_message=None,
                claim_token=None,
                processed_at=None,
                updated_at=datetime.now(timezone.utc),
            )
        )
        return self.session.execute(stmt).rowcount

    def cleanup_completed(self, older_than: timedelta) -> int:
        """
        Delete completed entries processed before now - older_than.

        Returns:
            Number of entries deleted
        """
        cutoff = datetime.now(timezone.utc) - older_than
        stmt = delete(self.table).where(
            self.table.c.status == QueueStatus.COMPLETED.value,
            self.table.c.processed_at < cutoff,
        )
        return self.session.execute(stmt).rowcount

    def get_stale_processing(self, stale_after: timedelta) -> list[QueueEntry]:
        """
        Get processing entries not updated since now - stale_after.

        Returns:
            Stale entries, least recently updated first
        """
        cutoff = datetime.now(timezone.utc) - stale_after
        stmt = (
            select(self.table)
            .where(
                self.table.c.status == QueueStatus.PROCESSING.value,
                self.table.c.updated_at < cutoff,
            )
            .order_by(self.table.c.updated_at.asc())
        )
        result = self.session.execute(stmt)
        return [self._row_to_model(row) for row in result.fetchall()]

    def count_by_status(self, status: QueueStatus) -> int:
        stmt = (
            select(func.count())
            .select_from(self.table)
            .where(self.table.c.status == status.value)
        )
        return self.session.execute(stmt).scalar_one()

    def _processing_seconds(self):
        """SQL expression for processed_at - queued_at in seconds."""
        processed_at = self.table.c.processed_at
        queued_at = self.table.c.queued_at
        if self.session.get_bind().dialect.name == "sqlite":
            return (func.julianday(processed_at) - func.julianday(queued_at)) * 86400.0
        return func.extract("epoch", processed_at - queued_at)

    def get_stats(self) -> QueueStats:
        """
        Get queue statistics.

        Returns:
            Counts per status and average processing latency of finished entries
        """
        count_stmt = select(self.table.c.status, func.count()).group_by(
            self.table.c.status
        )
        counts = {
            status: count for status, count in self.session.execute(count_stmt).all()
        }

        avg_stmt = select(func.avg(self._processing_seconds())).where(
            self.table.c.processed_at.is_not(None)
        )
        avg_seconds = self.session.execute(avg_stmt).scalar_one_or_none()

        return QueueStats(
            pending_count=counts.get(QueueStatus.PENDING.value, 0),
            processing_count=counts.get(QueueStatus.PROCESSING.value, 0),
            completed_count=counts.get(QueueStatus.COMPLETED.value, 0),
            failed_count=counts.get(QueueStatus.FAILED.value, 0),
            avg_processing_time_seconds=float(avg_seconds or 0.0),
        )
