"""
Configuration for the attachment processing pipeline.

Settings are read from the environment (and a local .env file) so the same
image can run with different worker counts and timeouts per deployment.
"""

import os
from datetime import timedelta

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_MODEL = "gemini-2.5-flash"


class ProcessorConfig(BaseModel):
    """Queue processor settings"""

    worker_count: int = Field(default=3, ge=1, description="Number of workers")
    poll_interval: timedelta = Field(
        default=timedelta(seconds=5), description="Delay between worker polls"
    )
    stale_timeout: timedelta = Field(
        default=timedelta(minutes=10),
        description="Processing entries not updated for this long are reclaimed",
    )
    max_retries: int = Field(default=3, ge=0, description="Retry budget per entry")
    cleanup_interval: timedelta = Field(
        default=timedelta(hours=1), description="Delay between cleanup runs"
    )
    keep_completed_for: timedelta = Field(
        default=timedelta(hours=24),
        description="Retention window for completed entries",
    )
    retry_interval: timedelta | None = Field(
        default=None,
        description="Delay between retry runs (defaults to cleanup_interval)",
    )
    stale_check_interval: timedelta | None = Field(
        default=None,
        description="Delay between staleness scans (defaults to stale_timeout / 2)",
    )

    @field_validator(
        "poll_interval",
        "stale_timeout",
        "cleanup_interval",
        "keep_completed_for",
        "retry_interval",
        "stale_check_interval",
    )
    @classmethod
    def _positive_duration(cls, value: timedelta | None) -> timedelta | None:
        if value is not None and value <= timedelta(0):
            raise ValueError("duration must be positive")
        return value

    @model_validator(mode="after")
    def _fill_intervals(self) -> "ProcessorConfig":
        if self.retry_interval is None:
            self.retry_interval = self.cleanup_interval
        if self.stale_check_interval is None:
            self.stale_check_interval = self.stale_timeout / 2
        return self

    @classmethod
    def from_env(cls) -> "ProcessorConfig":
        """
        Build config from QUEUE_* environment variables.

        Unset variables fall back to the field defaults.
        """
        load_dotenv()

        values: dict = {}

        if worker_count := os.getenv("QUEUE_WORKER_COUNT"):
            values["worker_count"] = int(worker_count)
        if max_retries := os.getenv("QUEUE_MAX_RETRIES"):
            values["max_retries"] = int(max_retries)

        seconds_settings = {
            "QUEUE_POLL_INTERVAL_SECONDS": "poll_interval",
            "QUEUE_STALE_TIMEOUT_SECONDS": "stale_timeout",
            "QUEUE_CLEANUP_INTERVAL_SECONDS": "cleanup_interval",
            "QUEUE_RETRY_INTERVAL_SECONDS": "retry_interval",
        }
        for env_name, field_name in seconds_settings.items():
            if raw := os.getenv(env_name):
                values[field_name] = timedelta(seconds=float(raw))

        if keep_hours := os.getenv("QUEUE_KEEP_COMPLETED_HOURS"):
            values["keep_completed_for"] = timedelta(hours=float(keep_hours))

        return cls(**values)
