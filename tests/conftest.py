"""
pytest configuration and fixtures.

Loads environment variables from .env file for all tests and provides a
throwaway SQLite database with the pipeline tables.
"""

from datetime import datetime
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from dotenv import load_dotenv
from sqlalchemy import create_engine, update
from sqlalchemy.orm import sessionmaker

from attachment_pipeline.db.tables import attachment_processing_queue, metadata
from attachment_pipeline.db.unit_of_work import UnitOfWork
from attachment_pipeline.models.attachment import Attachment, AttachmentCategory
from attachment_pipeline.queue.store import PersistentQueueStore


def pytest_configure(config):
    """Load .env file before running tests"""
    project_root = Path(__file__).parent.parent
    env_file = project_root / ".env"

    if env_file.exists():
        load_dotenv(env_file)


@pytest.fixture
def engine(tmp_path: Path):
    """File-backed SQLite engine, shareable across worker threads."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'pipeline.db'}",
        connect_args={"timeout": 30, "check_same_thread": False},
    )
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine)


@pytest.fixture
def store(session_factory) -> PersistentQueueStore:
    return PersistentQueueStore(session_factory)


@pytest.fixture
def make_attachment(session_factory):
    """Insert an attachment row and return the model."""

    def _make(
        file_type: str = "image/jpeg",
        category: AttachmentCategory = AttachmentCategory.EQUIPMENT_PHOTO,
        storage_path: str = "/data/attachments/photo.jpg",
    ) -> Attachment:
        attachment_id = str(uuid4())
        attachment = Attachment(
            id=attachment_id,
            ticket_id="TKT-1042",
            filename=f"{attachment_id}.jpg",
            original_filename="ventilator_front.jpg",
            file_type=file_type,
            file_size_bytes=2048,
            storage_path=storage_path,
            category=category,
        )
        with UnitOfWork(session_factory) as uow:
            created = uow.attachments.create(attachment)
            uow.commit()
        return created

    return _make


@pytest.fixture
def backdate(session_factory):
    """Set timestamp columns of a queue entry to a point in the past."""

    def _backdate(entry_id: str, **columns: datetime) -> None:
        with session_factory() as session:
            session.execute(
                update(attachment_processing_queue)
                .where(attachment_processing_queue.c.id == UUID(entry_id))
                .values(**columns)
            )
            session.commit()

    return _backdate
