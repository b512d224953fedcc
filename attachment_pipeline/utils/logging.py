"""
Logging setup for the attachment pipeline worker.

On Cloud Run (K_SERVICE set) records go to Cloud Logging through
google-cloud-logging; structured context passed as
extra={"json_fields": {...}} becomes jsonPayload fields there. Locally the
same fields are printed under the message.
"""

import json
import logging
import os
import sys

_logging_configured = False

# Libraries that log every statement or request at INFO
_NOISY_LOGGERS = ("sqlalchemy.engine", "httpx", "google_adk", "google_genai")


class LocalFormatter(logging.Formatter):
    """Formatter that appends a record's json_fields as indented JSON."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)

        json_fields = getattr(record, "json_fields", None)
        if json_fields:
            fields_str = json.dumps(json_fields, indent=2, default=str)
            message = f"{message}\n{fields_str}"

        return message


def setup_logging(service_name: str = "attachment-pipeline", level: str | None = None):
    """
    Configure root logging once per process.

    Args:
        service_name: Service label attached to Cloud Logging entries
        level: Log level name; defaults to LOG_LEVEL or INFO
    """
    global _logging_configured

    if _logging_configured:
        return

    log_level = logging.getLevelName((level or os.getenv("LOG_LEVEL", "INFO")).upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    if os.getenv("K_SERVICE"):
        _setup_cloud_logging(service_name, log_level)
    else:
        _setup_local_logging(log_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    _logging_configured = True


def _setup_cloud_logging(service_name: str, log_level: int):
    try:
        import google.cloud.logging

        client = google.cloud.logging.Client()
        client.setup_logging(log_level=log_level, labels={"service": service_name})

        logging.info(f"Cloud Logging configured for service: {service_name}")
    except Exception as e:
        _setup_local_logging(log_level)
        logging.warning(f"Failed to setup Cloud Logging, using local logging: {e}")


def _setup_local_logging(log_level: int):
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        LocalFormatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addHandler(handler)
