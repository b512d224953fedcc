"""
Attachment Pipeline Worker - Main FastAPI Application.

Runs the queue processor (worker pool plus maintenance tasks) and exposes
the enqueue entrypoint and queue statistics.
"""

import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

from attachment_pipeline.config import DEFAULT_MODEL, ProcessorConfig
from attachment_pipeline.utils.logging import setup_logging

# Load environment variables
load_dotenv()

# Configure logging early
setup_logging("attachment-pipeline-worker")


def _init_database() -> bool:
    """Initialize database connection if configured."""
    from attachment_pipeline.db import DatabaseConnection

    if not (os.getenv("DATABASE_URL") or os.getenv("INSTANCE_CONNECTION_NAME")):
        print("   Database: Not configured (DATABASE_URL / INSTANCE_CONNECTION_NAME not set)")
        return False

    try:
        DatabaseConnection.initialize()
        print("   Database: Connected")
        return True
    except Exception as e:
        print(f"   Database: Failed to connect - {e}")
        return False


def _processor_enabled() -> bool:
    return os.getenv("QUEUE_PROCESSOR_ENABLED", "true").lower() not in ("0", "false", "no")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    from attachment_pipeline.queue import PersistentQueueStore
    from attachment_pipeline.worker.processor import QueueProcessor

    # Startup
    print("🔨 Starting Attachment Pipeline Worker...")
    print(f"   Environment: {os.getenv('GOOGLE_CLOUD_PROJECT', 'local')}")
    print(f"   Model: {DEFAULT_MODEL}")

    app.state.store = None
    app.state.processor = None

    db_initialized = _init_database()

    if db_initialized:
        app.state.store = PersistentQueueStore()

        if _processor_enabled():
            from attachment_pipeline.agents import VisionAnalyzer

            config = ProcessorConfig.from_env()
            processor = QueueProcessor(app.state.store, VisionAnalyzer(), config=config)
            await processor.start()
            app.state.processor = processor
            print(f"   Processor: {config.worker_count} workers")
        else:
            print("   Processor: Disabled (QUEUE_PROCESSOR_ENABLED=false)")

    yield

    # Shutdown
    if app.state.processor is not None:
        await app.state.processor.stop()
        print("   Processor: Stopped")

    if db_initialized:
        from attachment_pipeline.db import DatabaseConnection

        DatabaseConnection.close()
        print("   Database: Connection closed")

    print("👋 Shutting down Attachment Pipeline Worker...")


# Create FastAPI application
app = FastAPI(
    title="Attachment Pipeline Worker API",
    description="Background worker that analyzes ticket attachments from a durable priority queue",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/")
async def root():
    """Root endpoint - service information."""
    return {
        "service": "Attachment Pipeline Worker API",
        "version": "0.1.0",
        "status": "operational",
        "description": "Asynchronous attachment analysis queue",
    }


@app.get("/health")
async def health_check():
    """
    Health check endpoint for Cloud Run.

    Returns:
        dict: Health status
    """
    processor = getattr(app.state, "processor", None)
    return {
        "status": "healthy",
        "service": "attachment-pipeline-worker",
        "environment": os.getenv("GOOGLE_CLOUD_PROJECT", "local"),
        "processor_running": processor is not None and processor.is_running,
    }


# Import and include queue routes
from attachment_pipeline.worker.routes import queue

app.include_router(queue.router, tags=["queue"])
