"""
Exceptions raised by the attachment processing pipeline.
"""


class QueueError(Exception):
    """Base class for processing queue errors."""


class QueueStoreError(QueueError):
    """The durable queue store could not be reached or the statement failed."""


class QueueEntryNotFoundError(QueueError):
    """No queue entry exists with the given ID."""

    def __init__(self, entry_id: str):
        super().__init__(f"Queue entry not found: {entry_id}")
        self.entry_id = entry_id


class InvalidTransitionError(QueueError):
    """The requested status change is not allowed from the entry's current status."""

    def __init__(self, entry_id: str, current_status: str, target_status: str):
        super().__init__(
            f"Queue entry {entry_id} cannot move from "
            f"'{current_status}' to '{target_status}'"
        )
        self.entry_id = entry_id
        self.current_status = current_status
        self.target_status = target_status


class StaleClaimError(InvalidTransitionError):
    """The entry was claimed again after the claim the caller holds."""

    def __init__(self, entry_id: str, target_status: str):
        QueueError.__init__(
            self,
            f"Queue entry {entry_id} was claimed again; "
            f"the stale claim cannot move it to '{target_status}'",
        )
        self.entry_id = entry_id
        self.current_status = "processing"
        self.target_status = target_status


class ProcessorAlreadyRunningError(QueueError):
    """start() was called on a queue processor that is already running."""


class AttachmentNotFoundError(Exception):
    """The attachment referenced by a queue entry does not exist."""

    def __init__(self, attachment_id: str):
        super().__init__(f"Attachment not found: {attachment_id}")
        self.attachment_id = attachment_id


class UnsupportedAttachmentError(Exception):
    """The analyzer cannot handle this kind of attachment."""
