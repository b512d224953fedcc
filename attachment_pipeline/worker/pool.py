"""
Worker pool for the attachment processing queue.

Each worker is an independent asyncio task running a poll loop:

    wait poll_interval -> dequeue -> fetch attachment -> analyze -> store
    result -> mark completed (or failed) -> report attachment status

Workers share nothing but the queue store. The store's atomic claim keeps
two workers from holding the same entry, so more workers (or more
processes pointed at the same database) is all it takes to scale out.

Blocking database calls run in threads via asyncio.to_thread so a slow
query never stalls the other workers' analyzer calls.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from attachment_pipeline.models.attachment import ProcessingStatus
from attachment_pipeline.models.queue import QueueEntry
from attachment_pipeline.queue.store import PersistentQueueStore
from attachment_pipeline.worker.interfaces import (
    Analyzer,
    AttachmentGateway,
    ResultSink,
)

logger = logging.getLogger(__name__)


class ProcessorMetrics:
    """Processing counters shared by the workers of one processor."""

    def __init__(self):
        self._processed_count = 0
        self._error_count = 0
        self._last_processed_at: datetime | None = None

    def record_success(self) -> None:
        self._processed_count += 1
        self._last_processed_at = datetime.now(timezone.utc)

    def record_error(self) -> None:
        self._error_count += 1

    @property
    def processed_count(self) -> int:
        return self._processed_count

    @property
    def error_count(self) -> int:
        return self._error_count

    @property
    def last_processed_at(self) -> datetime | None:
        return self._last_processed_at


class WorkerPool:
    """
    Fixed set of polling workers.

    Usage:
        pool = WorkerPool(store, analyzer, SqlAttachmentGateway(), SqlResultSink())
        pool.start()
        ...
        await pool.stop()  # in-flight analyses are allowed to finish

    Args:
        store: Queue store shared by all workers
        analyzer: Performs the analysis of each attachment
        attachments: Attachment lookup and status side channel
        results: Receives successful analysis results
        worker_count: Number of concurrent workers
        poll_interval: Wait before each poll
        metrics: Counters to update (a fresh instance if omitted)
    """

    def __init__(
        self,
        store: PersistentQueueStore,
        analyzer: Analyzer,
        attachments: AttachmentGateway,
        results: ResultSink,
        worker_count: int = 3,
        poll_interval: timedelta = timedelta(seconds=5),
        metrics: ProcessorMetrics | None = None,
    ):
        if worker_count < 1:
            raise ValueError("worker_count must be at least 1")

        self.store = store
        self.analyzer = analyzer
        self.attachments = attachments
        self.results = results
        self.worker_count = worker_count
        self.poll_interval = poll_interval
        self.metrics = metrics or ProcessorMetrics()

        self._stop_event: asyncio.Event | None = None
        self._tasks: list[asyncio.Task] = []

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    def start(self) -> None:
        """Spawn the worker tasks on the running event loop."""
        if self._tasks:
            return

        self._stop_event = asyncio.Event()
        self._tasks = [
            asyncio.create_task(self._run_worker(worker_id), name=f"queue-worker-{worker_id}")
            for worker_id in range(self.worker_count)
        ]
        logger.info("Started %d queue workers", self.worker_count)

    async def stop(self) -> None:
        """Signal all workers to exit and wait for them to finish."""
        if not self._tasks:
            return

        self._stop_event.set()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("Stopped queue workers")

    async def _run_worker(self, worker_id: int) -> None:
        logger.debug("Worker %d started", worker_id)

        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), self.poll_interval.total_seconds()
                )
                break
            except asyncio.TimeoutError:
                pass

            try:
                await self.run_cycle(worker_id)
            except Exception as e:
                logger.exception("Worker %d poll cycle failed: %s", worker_id, e)

        logger.debug("Worker %d stopped", worker_id)

    async def run_cycle(self, worker_id: int = 0) -> bool:
        """
        Run one poll cycle: claim at most one entry and process it.

        Returns:
            True if an entry was claimed, False if the queue was empty or the
            claim failed
        """
        try:
            entry = await asyncio.to_thread(self.store.dequeue)
        except Exception as e:
            logger.error("Worker %d failed to dequeue: %s", worker_id, e)
            return False

        if entry is None:
            return False

        logger.info(
            "Worker %d processing attachment %s",
            worker_id,
            entry.attachment_id,
            extra={
                "json_fields": {
                    "entry_id": entry.id,
                    "attachment_id": entry.attachment_id,
                    "priority": entry.priority.value,
                    "retry_count": entry.retry_count,
                }
            },
        )
        await self._process_entry(worker_id, entry)
        return True

    async def _process_entry(self, worker_id: int, entry: QueueEntry) -> None:
        try:
            attachment = await asyncio.to_thread(
                self.attachments.get_by_id, entry.attachment_id
            )
        except Exception as e:
            await self._fail_entry(worker_id, entry, f"Failed to get attachment: {e}")
            return

        try:
            result = await self.analyzer.process(attachment)
            await asyncio.to_thread(self.results.store, result)
        except Exception as e:
            await self._fail_entry(worker_id, entry, f"Processing failed: {e}")
            return

        try:
            await asyncio.to_thread(
                self.store.mark_completed, entry.id, entry.claim_token
            )
        except Exception as e:
            logger.error(
                "Worker %d failed to mark entry %s completed: %s", worker_id, entry.id, e
            )
            self.metrics.record_error()
            return

        self.metrics.record_success()
        logger.info(
            "Worker %d completed attachment %s", worker_id, entry.attachment_id
        )
        await self._report_status(entry, ProcessingStatus.PROCESSED)

    async def _fail_entry(self, worker_id: int, entry: QueueEntry, message: str) -> None:
        logger.warning(
            "Worker %d failed attachment %s: %s", worker_id, entry.attachment_id, message
        )
        self.metrics.record_error()

        try:
            await asyncio.to_thread(
                self.store.mark_failed, entry.id, message, entry.claim_token
            )
        except Exception as e:
            logger.error(
                "Worker %d failed to mark entry %s failed: %s", worker_id, entry.id, e
            )
            return

        await self._report_status(entry, ProcessingStatus.FAILED)

    async def _report_status(self, entry: QueueEntry, status: ProcessingStatus) -> None:
        # Best effort: the queue transition has already been committed.
        try:
            await asyncio.to_thread(
                self.attachments.update_status, entry.attachment_id, status
            )
        except Exception as e:
            logger.warning(
                "Failed to set attachment %s status to %s: %s",
                entry.attachment_id,
                status.value,
                e,
            )
