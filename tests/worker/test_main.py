"""
Tests for the worker service endpoints.

The lifespan is not run; the store and processor are attached to app.state
directly.
"""

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from attachment_pipeline.models.queue import QueuePriority
from attachment_pipeline.worker.main import app
from attachment_pipeline.worker.processor import QueueProcessor


@pytest.fixture
def client() -> TestClient:
    """Create test client for worker service"""
    return TestClient(app)


@pytest.fixture
def configured_app(store, analyzer, gateway, sink):
    app.state.store = store
    app.state.processor = QueueProcessor(store, analyzer, gateway, sink)
    yield app
    app.state.store = None
    app.state.processor = None


class TestHealthEndpoints:
    def test_root_endpoint(self, client: TestClient):
        """Test root endpoint returns service info"""
        response = client.get("/")
        assert response.status_code == 200

        data = response.json()
        assert data["service"] == "Attachment Pipeline Worker API"
        assert data["status"] == "operational"

    def test_health_endpoint(self, client: TestClient):
        """Test health check endpoint"""
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "attachment-pipeline-worker"
        assert data["processor_running"] is False


class TestQueueEndpoints:
    def test_enqueue(self, client: TestClient, configured_app, store):
        """Test enqueue creates a pending entry"""
        attachment_id = str(uuid4())

        response = client.post(
            "/queue", json={"attachment_id": attachment_id, "priority": "urgent"}
        )
        assert response.status_code == 201

        data = response.json()
        assert data["attachment_id"] == attachment_id
        assert data["status"] == "pending"
        assert data["priority"] == "urgent"
        assert data["retry_count"] == 0

        assert store.dequeue().attachment_id == attachment_id

    def test_enqueue_default_priority(self, client: TestClient, configured_app):
        """Test priority defaults to medium"""
        response = client.post("/queue", json={"attachment_id": str(uuid4())})
        assert response.status_code == 201
        assert response.json()["priority"] == "medium"

    def test_enqueue_rejects_unknown_priority(self, client: TestClient, configured_app):
        """Test invalid priority is rejected"""
        response = client.post(
            "/queue", json={"attachment_id": str(uuid4()), "priority": "critical"}
        )
        assert response.status_code == 422

    def test_enqueue_rejects_invalid_attachment_id(
        self, client: TestClient, configured_app
    ):
        """Test non-UUID attachment IDs are rejected"""
        response = client.post("/queue", json={"attachment_id": "photo.jpg"})
        assert response.status_code == 422

    def test_queue_stats(self, client: TestClient, configured_app, store):
        """Test stats count entries per status"""
        store.enqueue(uuid4(), QueuePriority.LOW)
        store.enqueue(uuid4(), QueuePriority.HIGH)
        store.dequeue()

        response = client.get("/queue/stats")
        assert response.status_code == 200

        data = response.json()
        assert data["pending_count"] == 1
        assert data["processing_count"] == 1
        assert data["completed_count"] == 0
        assert data["failed_count"] == 0
        assert data["total"] == 2

    def test_get_entry(self, client: TestClient, configured_app, store):
        """Test a single entry can be looked up"""
        entry = store.enqueue(uuid4(), QueuePriority.HIGH)

        response = client.get(f"/queue/entries/{entry.id}")
        assert response.status_code == 200
        assert response.json()["id"] == entry.id

    def test_get_entry_not_found(self, client: TestClient, configured_app):
        """Test unknown entries return 404"""
        response = client.get(f"/queue/entries/{uuid4()}")
        assert response.status_code == 404

    def test_get_entry_invalid_id(self, client: TestClient, configured_app):
        """Test malformed entry IDs return 422"""
        response = client.get("/queue/entries/not-a-uuid")
        assert response.status_code == 422

    def test_processor_status(self, client: TestClient, configured_app):
        """Test processor status reports an idle processor"""
        response = client.get("/processor/status")
        assert response.status_code == 200

        data = response.json()
        assert data["is_running"] is False
        assert data["processed_count"] == 0
        assert data["worker_count"] == 3


class TestNotConfigured:
    def test_queue_unavailable_without_database(self, client: TestClient):
        """Test 503 when no store is configured"""
        app.state.store = None
        app.state.processor = None

        assert client.post("/queue", json={"attachment_id": str(uuid4())}).status_code == 503
        assert client.get("/queue/stats").status_code == 503
        assert client.get("/processor/status").status_code == 503
