"""
Unit of Work: one session, one transaction, several repositories.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, TypeVar

from attachment_pipeline.db.connection import DatabaseConnection
from attachment_pipeline.db.repositories.analysis import AnalysisRepository
from attachment_pipeline.db.repositories.attachment import AttachmentRepository
from attachment_pipeline.db.repositories.queue import QueueRepository

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

RepoT = TypeVar("RepoT")


class UnitOfWork:
    """
    Transaction boundary shared by the repositories it hands out.

    Usage:
        with UnitOfWork() as uow:
            entry = uow.queue.claim_next()
            uow.attachments.update_status(entry.attachment_id, "processing")
            uow.commit()

    Nothing is committed implicitly. Leaving the block with an exception rolls
    back; leaving it without commit() discards the changes when the session
    closes.

    Sessions come from DatabaseConnection unless a session_factory is given
    (tests pass one bound to their own engine).
    """

    def __init__(self, session_factory: Callable[[], Session] | None = None):
        self._session_factory = session_factory or DatabaseConnection.get_session
        self._session: Session | None = None
        self._repositories: dict[type, object] = {}

    def __enter__(self) -> UnitOfWork:
        self._session = self._session_factory()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is not None:
                self.rollback()
        finally:
            self._close()
        return False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise RuntimeError("UnitOfWork is not active; use it as a context manager")
        return self._session

    def _repository(self, repo_class: type[RepoT]) -> RepoT:
        if repo_class not in self._repositories:
            self._repositories[repo_class] = repo_class(self.session)
        return self._repositories[repo_class]

    @property
    def queue(self) -> QueueRepository:
        return self._repository(QueueRepository)

    @property
    def attachments(self) -> AttachmentRepository:
        return self._repository(AttachmentRepository)

    @property
    def analyses(self) -> AnalysisRepository:
        return self._repository(AnalysisRepository)

    def commit(self):
        self.session.commit()

    def rollback(self):
        self.session.rollback()

    def _close(self):
        if self._session is not None:
            self._session.close()
        self._session = None
        self._repositories.clear()
