"""
Attachment Pipeline Worker Service

Background processing of uploaded attachments:
- Worker pool claiming entries from the durable priority queue
- Staleness monitor reclaiming entries abandoned by dead workers
- Retry coordinator requeuing failures within the retry budget
- Cleanup of old completed entries
"""

__all__ = []
