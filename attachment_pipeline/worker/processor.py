"""
Queue processor: the worker pool plus its maintenance tasks.
"""

import logging
from datetime import datetime
from typing import Callable

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from attachment_pipeline.config import ProcessorConfig
from attachment_pipeline.exceptions import ProcessorAlreadyRunningError
from attachment_pipeline.queue.store import PersistentQueueStore
from attachment_pipeline.worker.interfaces import (
    Analyzer,
    AttachmentGateway,
    ResultSink,
    SqlAttachmentGateway,
    SqlResultSink,
)
from attachment_pipeline.worker.maintenance import (
    CleanupWorker,
    RetryCoordinator,
    StalenessMonitor,
)
from attachment_pipeline.worker.pool import ProcessorMetrics, WorkerPool

logger = logging.getLogger(__name__)


class ProcessorStatus(BaseModel):
    """Snapshot of a queue processor"""

    is_running: bool
    processed_count: int = Field(ge=0)
    error_count: int = Field(ge=0)
    last_processed_at: datetime | None = None
    worker_count: int = Field(ge=1)


class QueueProcessor:
    """
    Runs the worker pool, staleness monitor, retry coordinator and cleanup
    worker against one queue store.

    Usage:
        processor = QueueProcessor(store, analyzer, config=ProcessorConfig.from_env())
        await processor.start()
        ...
        await processor.stop()
    """

    def __init__(
        self,
        store: PersistentQueueStore,
        analyzer: Analyzer,
        attachments: AttachmentGateway | None = None,
        results: ResultSink | None = None,
        config: ProcessorConfig | None = None,
        metrics: ProcessorMetrics | None = None,
    ):
        self.config = config or ProcessorConfig()
        self.store = store
        self.metrics = metrics or ProcessorMetrics()

        self.pool = WorkerPool(
            store,
            analyzer,
            attachments or SqlAttachmentGateway(),
            results or SqlResultSink(),
            worker_count=self.config.worker_count,
            poll_interval=self.config.poll_interval,
            metrics=self.metrics,
        )
        self.staleness_monitor = StalenessMonitor(
            store,
            stale_timeout=self.config.stale_timeout,
            interval=self.config.stale_check_interval,
        )
        self.retry_coordinator = RetryCoordinator(
            store,
            max_retries=self.config.max_retries,
            interval=self.config.retry_interval,
        )
        self.cleanup_worker = CleanupWorker(
            store,
            keep_completed_for=self.config.keep_completed_for,
            interval=self.config.cleanup_interval,
        )
        self._running = False

    @classmethod
    def from_session_factory(
        cls,
        session_factory: Callable[[], Session],
        analyzer: Analyzer,
        config: ProcessorConfig | None = None,
    ) -> "QueueProcessor":
        """Build a processor whose store, gateway and sink share one database."""
        return cls(
            PersistentQueueStore(session_factory),
            analyzer,
            attachments=SqlAttachmentGateway(session_factory),
            results=SqlResultSink(session_factory),
            config=config,
        )

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """
        Start workers and maintenance tasks.

        Raises:
            ProcessorAlreadyRunningError: If already started
        """
        if self._running:
            raise ProcessorAlreadyRunningError("Queue processor is already running")

        self.pool.start()
        self.staleness_monitor.start()
        self.retry_coordinator.start()
        self.cleanup_worker.start()
        self._running = True

        logger.info(
            "Queue processor started",
            extra={
                "json_fields": {
                    "worker_count": self.config.worker_count,
                    "poll_interval_s": self.config.poll_interval.total_seconds(),
                    "stale_timeout_s": self.config.stale_timeout.total_seconds(),
                    "max_retries": self.config.max_retries,
                }
            },
        )

    async def stop(self) -> None:
        """Stop everything, letting in-flight analyses finish. No-op if stopped."""
        if not self._running:
            return

        await self.pool.stop()
        await self.staleness_monitor.stop()
        await self.retry_coordinator.stop()
        await self.cleanup_worker.stop()
        self._running = False

        logger.info("Queue processor stopped")

    def get_status(self) -> ProcessorStatus:
        return ProcessorStatus(
            is_running=self._running,
            processed_count=self.metrics.processed_count,
            error_count=self.metrics.error_count,
            last_processed_at=self.metrics.last_processed_at,
            worker_count=self.config.worker_count,
        )
