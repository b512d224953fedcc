"""
Tests for PersistentQueueStore against a real (SQLite) database.
"""

import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from attachment_pipeline.exceptions import (
    InvalidTransitionError,
    QueueEntryNotFoundError,
    QueueStoreError,
    StaleClaimError,
)
from attachment_pipeline.models.queue import QueuePriority, QueueStatus
from attachment_pipeline.queue.store import PersistentQueueStore


def _complete_next(store: PersistentQueueStore):
    entry = store.dequeue()
    store.mark_completed(entry.id)
    return entry


class TestEnqueueDequeue:
    """Tests for basic queue flow."""

    def test_round_trip(self, store):
        """Verify enqueue then dequeue returns the same attachment, processing."""
        attachment_id = str(uuid4())

        queued = store.enqueue(attachment_id, QueuePriority.HIGH)
        claimed = store.dequeue()

        assert queued.status == QueueStatus.PENDING
        assert queued.retry_count == 0
        assert claimed is not None
        assert claimed.id == queued.id
        assert claimed.attachment_id == attachment_id
        assert claimed.status == QueueStatus.PROCESSING
        assert claimed.priority == QueuePriority.HIGH

    def test_dequeue_empty_returns_none(self, store):
        """Verify an empty queue yields None rather than an error."""
        assert store.dequeue() is None

    def test_dequeue_skips_non_pending(self, store):
        """Verify only pending entries are claimed."""
        store.enqueue(uuid4(), QueuePriority.URGENT)
        store.dequeue()

        assert store.dequeue() is None

    def test_strict_priority_order(self, store):
        """Verify all higher-tier entries are claimed before any lower-tier entry."""
        enqueued = [
            QueuePriority.LOW,
            QueuePriority.HIGH,
            QueuePriority.MEDIUM,
            QueuePriority.URGENT,
            QueuePriority.LOW,
            QueuePriority.URGENT,
            QueuePriority.HIGH,
            QueuePriority.MEDIUM,
        ]
        for priority in enqueued:
            store.enqueue(uuid4(), priority)

        claimed = []
        while (entry := store.dequeue()) is not None:
            claimed.append(entry.priority)

        assert claimed == sorted(enqueued, reverse=True)
        assert all(a >= b for a, b in zip(claimed, claimed[1:]))

    def test_fifo_within_tier(self, store):
        """Verify entries of one tier are claimed in creation order."""
        attachment_ids = [str(uuid4()) for _ in range(5)]
        for attachment_id in attachment_ids:
            store.enqueue(attachment_id, QueuePriority.MEDIUM)

        claimed = [store.dequeue().attachment_id for _ in attachment_ids]

        assert claimed == attachment_ids

    def test_later_urgent_entry_jumps_ahead(self, store):
        """Verify a newly queued urgent entry is served before older low entries."""
        low = store.enqueue(uuid4(), QueuePriority.LOW)
        urgent = store.enqueue(uuid4(), QueuePriority.URGENT)

        assert store.dequeue().id == urgent.id
        assert store.dequeue().id == low.id


class TestConcurrentDequeue:
    """Tests for the at-most-one-claim guarantee."""

    def test_no_entry_claimed_twice(self, store):
        """Verify concurrent workers never receive the same entry."""
        entry_count = 40
        for i in range(entry_count):
            store.enqueue(uuid4(), list(QueuePriority)[i % 4])

        claims: list[str] = []
        claims_lock = threading.Lock()
        start = threading.Barrier(8)

        def worker():
            start.wait()
            while True:
                try:
                    entry = store.dequeue()
                except QueueStoreError:
                    continue
                if entry is None:
                    return
                with claims_lock:
                    claims.append(entry.id)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)

        assert len(claims) == entry_count
        assert len(set(claims)) == entry_count
        assert store.get_processing_count() == entry_count
        assert store.get_pending_count() == 0


class TestStatusTransitions:
    """Tests for completion and failure bookkeeping."""

    def test_mark_completed_sets_processed_at(self, store):
        """Verify completion records processed_at and clears nothing else."""
        store.enqueue(uuid4(), QueuePriority.MEDIUM)
        entry = _complete_next(store)

        completed = store.get_entry(entry.id)
        assert completed.status == QueueStatus.COMPLETED
        assert completed.processed_at is not None
        assert completed.retry_count == 0

    def test_mark_failed_records_error(self, store):
        """Verify failure stores the message and counts the attempt."""
        store.enqueue(uuid4(), QueuePriority.MEDIUM)
        entry = store.dequeue()

        store.mark_failed(entry.id, "Processing failed: model unavailable")

        failed = store.get_entry(entry.id)
        assert failed.status == QueueStatus.FAILED
        assert failed.error_message == "Processing failed: model unavailable"
        assert failed.retry_count == 1
        assert failed.processed_at is not None

    def test_completed_entry_cannot_fail(self, store):
        """Verify terminal entries reject further transitions."""
        store.enqueue(uuid4(), QueuePriority.MEDIUM)
        entry = _complete_next(store)

        with pytest.raises(InvalidTransitionError):
            store.mark_failed(entry.id, "late failure")

        assert store.get_entry(entry.id).status == QueueStatus.COMPLETED

    def test_unknown_entry(self, store):
        """Verify transitions on unknown IDs raise QueueEntryNotFoundError."""
        with pytest.raises(QueueEntryNotFoundError):
            store.mark_completed(str(uuid4()))

    def test_get_entry_unknown_returns_none(self, store):
        """Verify get_entry returns None for unknown IDs."""
        assert store.get_entry(str(uuid4())) is None


class TestClaimTokens:
    """Tests for claim ownership on completion and failure."""

    def test_each_claim_gets_a_new_token(self, store):
        """Verify a re-claimed entry carries a different token."""
        store.enqueue(uuid4(), QueuePriority.MEDIUM)
        first = store.dequeue()
        store.mark_failed(first.id, "boom", first.claim_token)
        store.retry_failed(max_retries=3)

        assert store.get_entry(first.id).claim_token is None

        second = store.dequeue()
        assert first.claim_token is not None
        assert second.claim_token is not None
        assert second.claim_token != first.claim_token

    def test_matching_token_completes(self, store):
        """Verify the current claim holder can complete the entry."""
        store.enqueue(uuid4(), QueuePriority.MEDIUM)
        entry = store.dequeue()

        store.mark_completed(entry.id, entry.claim_token)

        assert store.get_entry(entry.id).status == QueueStatus.COMPLETED

    def test_old_token_cannot_fail_new_claim(self, store):
        """Verify a superseded claim cannot fail the entry or count a retry."""
        store.enqueue(uuid4(), QueuePriority.MEDIUM)
        old = store.dequeue()
        store.mark_failed(old.id, "Processing timed out (stale)", old.claim_token)
        store.retry_failed(max_retries=3)
        new = store.dequeue()

        with pytest.raises(StaleClaimError):
            store.mark_failed(old.id, "Processing failed: late", old.claim_token)

        entry = store.get_entry(new.id)
        assert entry.status == QueueStatus.PROCESSING
        assert entry.retry_count == 1
        assert entry.error_message is None

    def test_stale_claim_error_is_invalid_transition(self, store):
        """Verify callers catching InvalidTransitionError also see stale claims."""
        store.enqueue(uuid4(), QueuePriority.MEDIUM)
        entry = store.dequeue()

        with pytest.raises(InvalidTransitionError):
            store.mark_completed(entry.id, str(uuid4()))

        assert store.get_entry(entry.id).status == QueueStatus.PROCESSING


class TestRetryFailed:
    """Tests for the retry budget."""

    def test_requeues_within_budget(self, store):
        """Verify failed entries below max_retries return to pending."""
        store.enqueue(uuid4(), QueuePriority.MEDIUM)
        entry = store.dequeue()
        store.mark_failed(entry.id, "boom")

        assert store.retry_failed(max_retries=3) == 1

        requeued = store.get_entry(entry.id)
        assert requeued.status == QueueStatus.PENDING
        assert requeued.error_message is None
        assert requeued.retry_count == 1

    def test_exhausted_entry_never_requeued(self, store):
        """Verify an entry that failed max_retries times stays failed."""
        max_retries = 3
        entry = store.enqueue(uuid4(), QueuePriority.MEDIUM)

        for attempt in range(max_retries):
            claimed = store.dequeue()
            assert claimed.id == entry.id
            store.mark_failed(claimed.id, f"attempt {attempt + 1} failed")
            store.retry_failed(max_retries)

        exhausted = store.get_entry(entry.id)
        assert exhausted.status == QueueStatus.FAILED
        assert exhausted.retry_count == max_retries

        assert store.retry_failed(max_retries) == 0
        assert store.get_entry(entry.id).status == QueueStatus.FAILED
        assert store.dequeue() is None

    def test_no_failed_entries_is_noop(self, store):
        """Verify retry_failed with nothing failed changes nothing."""
        store.enqueue(uuid4(), QueuePriority.LOW)

        assert store.retry_failed(max_retries=3) == 0
        assert store.get_pending_count() == 1


class TestCleanupCompleted:
    """Tests for completed entry cleanup."""

    def test_deletes_only_old_completed(self, store, backdate):
        """Verify only completed entries past the window are deleted."""
        store.enqueue(uuid4(), QueuePriority.MEDIUM)
        store.enqueue(uuid4(), QueuePriority.MEDIUM)
        store.enqueue(uuid4(), QueuePriority.MEDIUM)

        old = _complete_next(store)
        recent = _complete_next(store)
        failed = store.dequeue()
        store.mark_failed(failed.id, "boom")

        two_days_ago = datetime.now(timezone.utc) - timedelta(days=2)
        backdate(old.id, processed_at=two_days_ago)
        backdate(failed.id, processed_at=two_days_ago)

        assert store.cleanup_completed(timedelta(hours=24)) == 1

        assert store.get_entry(old.id) is None
        assert store.get_entry(recent.id) is not None
        assert store.get_entry(failed.id) is not None

    def test_cleanup_is_idempotent(self, store, backdate):
        """Verify a second cleanup with no new completions deletes nothing."""
        store.enqueue(uuid4(), QueuePriority.MEDIUM)
        entry = _complete_next(store)
        backdate(entry.id, processed_at=datetime.now(timezone.utc) - timedelta(days=2))

        assert store.cleanup_completed(timedelta(hours=24)) == 1
        assert store.cleanup_completed(timedelta(hours=24)) == 0


class TestStaleProcessing:
    """Tests for stale processing detection."""

    def test_finds_entries_not_updated_recently(self, store, backdate):
        """Verify processing entries older than stale_after are reported."""
        store.enqueue(uuid4(), QueuePriority.MEDIUM)
        store.enqueue(uuid4(), QueuePriority.MEDIUM)
        stale = store.dequeue()
        fresh = store.dequeue()

        backdate(stale.id, updated_at=datetime.now(timezone.utc) - timedelta(minutes=15))

        stale_entries = store.get_stale_processing_items(timedelta(minutes=10))

        assert [entry.id for entry in stale_entries] == [stale.id]
        assert fresh.id not in [entry.id for entry in stale_entries]

    def test_ignores_other_statuses(self, store, backdate):
        """Verify old pending and completed entries are not stale."""
        pending = store.enqueue(uuid4(), QueuePriority.LOW)
        store.enqueue(uuid4(), QueuePriority.URGENT)
        completed = _complete_next(store)

        long_ago = datetime.now(timezone.utc) - timedelta(hours=1)
        backdate(pending.id, updated_at=long_ago)
        backdate(completed.id, updated_at=long_ago)

        assert store.get_stale_processing_items(timedelta(minutes=10)) == []


class TestQueueStats:
    """Tests for statistics."""

    def test_counts_and_average(self, store, backdate):
        """Verify counts per status and average processing time."""
        for _ in range(4):
            store.enqueue(uuid4(), QueuePriority.MEDIUM)

        first = _complete_next(store)
        second = _complete_next(store)
        store.dequeue()

        processed_at = datetime.now(timezone.utc)
        backdate(first.id, queued_at=processed_at - timedelta(seconds=10), processed_at=processed_at)
        backdate(second.id, queued_at=processed_at - timedelta(seconds=20), processed_at=processed_at)

        stats = store.get_queue_stats()

        assert stats.pending_count == 1
        assert stats.processing_count == 1
        assert stats.completed_count == 2
        assert stats.failed_count == 0
        assert stats.total == 4
        assert stats.avg_processing_time_seconds == pytest.approx(15.0, abs=0.01)
        assert store.get_pending_count() == 1
        assert store.get_processing_count() == 1

    def test_empty_queue(self, store):
        """Verify stats of an empty queue are all zero."""
        stats = store.get_queue_stats()
        assert stats.total == 0
        assert stats.avg_processing_time_seconds == 0.0


class TestStoreErrors:
    """Tests for database error wrapping."""

    def test_database_error_wrapped(self):
        """Verify SQLAlchemy errors surface as QueueStoreError."""
        session = MagicMock()
        session.execute.side_effect = OperationalError("SELECT 1", {}, Exception("down"))
        store = PersistentQueueStore(lambda: session)

        with pytest.raises(QueueStoreError) as exc_info:
            store.dequeue()

        assert isinstance(exc_info.value.__cause__, OperationalError)
        session.rollback.assert_called_once()
        session.close.assert_called_once()
