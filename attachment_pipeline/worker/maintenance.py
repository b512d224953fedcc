"""
Periodic maintenance for the processing queue.

- StalenessMonitor: reclaims entries stuck in processing (dead workers)
- RetryCoordinator: requeues failed entries within the retry budget
- CleanupWorker: deletes old completed entries

All three are best effort. A failing tick is logged and the next tick
tries again; nothing here can take the pipeline down.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import timedelta

from attachment_pipeline.queue.store import PersistentQueueStore

logger = logging.getLogger(__name__)

STALE_ERROR_MESSAGE = "Processing timed out (stale)"


class PeriodicTask(ABC):
    """Runs tick() every interval until stopped."""

    name = "periodic-task"

    def __init__(self, store: PersistentQueueStore, interval: timedelta):
        if interval <= timedelta(0):
            raise ValueError(f"{self.name} interval must be positive")

        self.store = store
        self.interval = interval
        self._stop_event: asyncio.Event | None = None
        self._task: asyncio.Task | None = None

    @abstractmethod
    def tick(self) -> int:
        """One maintenance pass. Returns the number of entries affected."""

    @property
    def is_running(self) -> bool:
        return self._task is not None

    async def run_once(self) -> int:
        """
        Run a single tick in a worker thread.

        Returns:
            Number of entries affected, 0 if the tick failed
        """
        try:
            return await asyncio.to_thread(self.tick)
        except Exception as e:
            logger.error("%s tick failed: %s", self.name, e)
            return 0

    def start(self) -> None:
        if self._task is not None:
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name=self.name)
        logger.info("Started %s (every %s)", self.name, self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return

        self._stop_event.set()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        logger.info("Stopped %s", self.name)

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), self.interval.total_seconds()
                )
                break
            except asyncio.TimeoutError:
                pass

            await self.run_once()


class StalenessMonitor(PeriodicTask):
    """
    Moves processing entries not updated within stale_timeout to failed.

    A worker that dies mid-analysis leaves its entry claimed forever; this
    puts it back into the failure pool where RetryCoordinator can requeue it.
    Checks every stale_timeout / 2 unless told otherwise.
    """

    name = "staleness-monitor"

    def __init__(
        self,
        store: PersistentQueueStore,
        stale_timeout: timedelta = timedelta(minutes=10),
        interval: timedelta | None = None,
    ):
        super().__init__(store, interval or stale_timeout / 2)
        self.stale_timeout = stale_timeout

    def tick(self) -> int:
        stale_entries = self.store.get_stale_processing_items(self.stale_timeout)
        if not stale_entries:
            return 0

        logger.warning("Found %d stale processing entries", len(stale_entries))

        reclaimed = 0
        for entry in stale_entries:
            try:
                self.store.mark_failed(
                    entry.id, STALE_ERROR_MESSAGE, entry.claim_token
                )
                reclaimed += 1
            except Exception as e:
                # Picked up again on the next tick
                logger.error("Failed to reclaim stale entry %s: %s", entry.id, e)

        return reclaimed


class RetryCoordinator(PeriodicTask):
    """Requeues failed entries whose retry_count is below max_retries."""

    name = "retry-coordinator"

    def __init__(
        self,
        store: PersistentQueueStore,
        max_retries: int = 3,
        interval: timedelta = timedelta(hours=1),
    ):
        super().__init__(store, interval)
        self.max_retries = max_retries

    def tick(self) -> int:
        return self.store.retry_failed(self.max_retries)


class CleanupWorker(PeriodicTask):
    """Deletes completed entries processed more than keep_completed_for ago."""

    name = "cleanup-worker"

    def __init__(
        self,
        store: PersistentQueueStore,
        keep_completed_for: timedelta = timedelta(hours=24),
        interval: timedelta = timedelta(hours=1),
    ):
        super().__init__(store, interval)
        self.keep_completed_for = keep_completed_for

    def tick(self) -> int:
        return self.store.cleanup_completed(self.keep_completed_for)
