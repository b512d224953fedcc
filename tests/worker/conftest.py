"""Fixtures for worker tests."""

import asyncio

import pytest

from attachment_pipeline.models.analysis import AnalysisResult
from attachment_pipeline.models.attachment import Attachment
from attachment_pipeline.worker.interfaces import (
    Analyzer,
    SqlAttachmentGateway,
    SqlResultSink,
)


class RecordingAnalyzer(Analyzer):
    """Analyzer that records calls and optionally fails or blocks."""

    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls: list[str] = []
        self.release: asyncio.Event | None = None
        self.started: asyncio.Event | None = None

    async def process(self, attachment: Attachment) -> AnalysisResult:
        self.calls.append(attachment.id)
        if self.started is not None:
            self.started.set()
        if self.release is not None:
            await self.release.wait()
        if self.error is not None:
            raise self.error
        return AnalysisResult(
            attachment_id=attachment.id,
            ticket_id=attachment.ticket_id,
            ai_model="fake-vision",
            overall_assessment="Ventilator front panel, no visible damage",
            analysis_confidence=0.9,
        )


@pytest.fixture
def analyzer() -> RecordingAnalyzer:
    return RecordingAnalyzer()


@pytest.fixture
def failing_analyzer() -> RecordingAnalyzer:
    return RecordingAnalyzer(error=RuntimeError("model unavailable"))


@pytest.fixture
def gateway(session_factory) -> SqlAttachmentGateway:
    return SqlAttachmentGateway(session_factory)


@pytest.fixture
def sink(session_factory) -> SqlResultSink:
    return SqlResultSink(session_factory)


async def wait_until(predicate, timeout: float = 5.0) -> None:
    """Poll predicate until it is true or fail after timeout seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


@pytest.fixture
def wait_for():
    return wait_until
