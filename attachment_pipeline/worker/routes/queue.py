"""
Queue endpoints.

The ingestion side posts newly uploaded attachments here; health and
metrics collaborators read queue statistics and processor status.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from attachment_pipeline.exceptions import QueueStoreError
from attachment_pipeline.models.queue import QueueEntry, QueueStats
from attachment_pipeline.models.task import EnqueueRequest
from attachment_pipeline.queue.store import PersistentQueueStore
from attachment_pipeline.worker.processor import ProcessorStatus, QueueProcessor

logger = logging.getLogger(__name__)

router = APIRouter()


def get_store(request: Request) -> PersistentQueueStore:
    """Queue store created at startup (503 when the database is not configured)."""
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Queue store is not configured")
    return store


def get_processor(request: Request) -> QueueProcessor:
    processor = getattr(request.app.state, "processor", None)
    if processor is None:
        raise HTTPException(status_code=503, detail="Queue processor is not configured")
    return processor


@router.post("/queue", response_model=QueueEntry, status_code=201)
async def enqueue_attachment(
    body: EnqueueRequest,
    store: PersistentQueueStore = Depends(get_store),
):
    """
    Queue an attachment for analysis.

    Args:
        body: Attachment ID and priority

    Returns:
        QueueEntry: The created pending entry
    """
    try:
        return await asyncio.to_thread(store.enqueue, body.attachment_id, body.priority)
    except QueueStoreError as e:
        logger.error("Failed to enqueue attachment %s: %s", body.attachment_id, e)
        raise HTTPException(status_code=503, detail="Queue store unavailable")


@router.get("/queue/stats", response_model=QueueStats)
async def queue_stats(store: PersistentQueueStore = Depends(get_store)):
    """Entry counts per status and average processing time."""
    try:
        return await asyncio.to_thread(store.get_queue_stats)
    except QueueStoreError as e:
        logger.error("Failed to read queue stats: %s", e)
        raise HTTPException(status_code=503, detail="Queue store unavailable")


@router.get("/queue/entries/{entry_id}", response_model=QueueEntry)
async def get_queue_entry(
    entry_id: str,
    store: PersistentQueueStore = Depends(get_store),
):
    try:
        entry = await asyncio.to_thread(store.get_entry, entry_id)
    except ValueError:
        raise HTTPException(status_code=422, detail="Invalid entry ID")
    except QueueStoreError as e:
        logger.error("Failed to read queue entry %s: %s", entry_id, e)
        raise HTTPException(status_code=503, detail="Queue store unavailable")

    if entry is None:
        raise HTTPException(status_code=404, detail="Queue entry not found")
    return entry


@router.get("/processor/status", response_model=ProcessorStatus)
async def processor_status(processor: QueueProcessor = Depends(get_processor)):
    return processor.get_status()
