"""
Durable, priority-ordered processing queue.

Every operation runs in its own transaction. The database is the only
coordination point between workers, so any number of workers or processes
can share one store.
"""

import logging
from contextlib import contextmanager
from datetime import timedelta
from typing import Callable, Generator
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from attachment_pipeline.db.unit_of_work import UnitOfWork
from attachment_pipeline.exceptions import QueueStoreError
from attachment_pipeline.models.queue import (
    QueueEntry,
    QueuePriority,
    QueueStats,
    QueueStatus,
)

logger = logging.getLogger(__name__)


class PersistentQueueStore:
    """
    Transactional queue operations over the processing queue table.

    Usage:
        store = PersistentQueueStore()  # sessions from DatabaseConnection
        store.enqueue(attachment_id, QueuePriority.HIGH)

        entry = store.dequeue()
        if entry is not None:
            ...
            store.mark_completed(entry.id, entry.claim_token)

    Database failures surface as QueueStoreError. Lookups of unknown entries
    and disallowed status changes raise QueueEntryNotFoundError and
    InvalidTransitionError.
    """

    def __init__(self, session_factory: Callable[[], Session] | None = None):
        self._session_factory = session_factory

    @contextmanager
    def _transaction(self, operation: str) -> Generator[UnitOfWork, None, None]:
        try:
            with UnitOfWork(self._session_factory) as uow:
                yield uow
                uow.commit()
        except SQLAlchemyError as e:
            raise QueueStoreError(f"Queue store {operation} failed: {e}") from e

    def enqueue(
        self,
        attachment_id: str | UUID,
        priority: QueuePriority = QueuePriority.MEDIUM,
    ) -> QueueEntry:
        """
        Queue an attachment for analysis.

        Args:
            attachment_id: Attachment to analyze
            priority: Priority tier

        Returns:
            The created pending entry
        """
        with self._transaction("enqueue") as uow:
            entry = uow.queue.enqueue(attachment_id, QueuePriority(priority))

        logger.info(
            "Queued attachment %s with priority %s (entry %s)",
            entry.attachment_id,
            entry.priority.value,
            entry.id,
        )
        return entry

    def dequeue(self) -> QueueEntry | None:
        """
        Claim the next entry to process.

        Returns:
            The claimed entry (now processing), or None if nothing is pending
        """
        with self._transaction("dequeue") as uow:
            return uow.queue.claim_next()

    def mark_completed(
        self, entry_id: str | UUID, claim_token: str | UUID | None = None
    ) -> None:
        """
        Mark a claimed entry as completed.

        Pass the claim_token of the dequeued entry so a claim that went stale
        and was handed to another worker is rejected with StaleClaimError.
        """
        with self._transaction("mark_completed") as uow:
            uow.queue.mark_completed(entry_id, claim_token)

    def mark_failed(
        self,
        entry_id: str | UUID,
        error_message: str,
        claim_token: str | UUID | None = None,
    ) -> None:
        """Mark a claimed entry as failed and increment its retry count."""
        with self._transaction("mark_failed") as uow:
            uow.queue.mark_failed(entry_id, error_message, claim_token)

    def retry_failed(self, max_retries: int) -> int:
        """
        Move failed entries with retry_count < max_retries back to pending.

        Returns:
            Number of entries requeued
        """
        with self._transaction("retry_failed") as uow:
            requeued = uow.queue.retry_failed(max_retries)

        if requeued:
            logger.info("Requeued %d failed queue entries", requeued)
        return requeued

    def cleanup_completed(self, older_than: timedelta) -> int:
        """
        Delete completed entries processed more than older_than ago.

        Returns:
            Number of entries deleted
        """
        with self._transaction("cleanup_completed") as uow:
            deleted = uow.queue.cleanup_completed(older_than)

        if deleted:
            logger.info("Deleted %d completed queue entries", deleted)
        return deleted

    def get_stale_processing_items(self, stale_after: timedelta) -> list[QueueEntry]:
        """Processing entries whose last update is older than stale_after."""
        with self._transaction("get_stale_processing_items") as uow:
            return uow.queue.get_stale_processing(stale_after)

    def get_queue_stats(self) -> QueueStats:
        with self._transaction("get_queue_stats") as uow:
            return uow.queue.get_stats()

    def get_pending_count(self) -> int:
        with self._transaction("get_pending_count") as uow:
            return uow.queue.count_by_status(QueueStatus.PENDING)

    def get_processing_count(self) -> int:
        with self._transaction("get_processing_count") as uow:
            return uow.queue.count_by_status(QueueStatus.PROCESSING)

    def get_entry(self, entry_id: str | UUID) -> QueueEntry | None:
        with self._transaction("get_entry") as uow:
            return uow.queue.get_by_id(entry_id)
