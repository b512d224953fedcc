"""
Attachment processing queue.

Durable priority queue shared by all workers:
- Atomic claiming with FOR UPDATE SKIP LOCKED and a guarded status flip
- Strict priority tiers (urgent > high > medium > low), FIFO within a tier
- Failure counting, retry budget and cleanup of completed entries
"""

from attachment_pipeline.queue.store import PersistentQueueStore

__all__ = ["PersistentQueueStore"]
