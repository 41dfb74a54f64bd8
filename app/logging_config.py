"""
Logging configuration for Cloud Run and local environments.

- Cloud Run (K_SERVICE set): google-cloud-logging with trace correlation
- Local/Test: standard Python logging to stdout as JSON lines

Structured fields are passed with ``extra={"extra_fields": {...}}``.
"""

import json
import logging
import os
from datetime import UTC, datetime

SERVICE_NAME = "email-schedule"


class JsonFormatter(logging.Formatter):
    """
    JSON log formatter.

    Keeps local logs in the same shape Cloud Logging shows them.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_object = {
            "timestamp": datetime.now(UTC).isoformat(),
            "severity": record.levelname,
            "service": SERVICE_NAME,
            "name": record.name,
            "message": record.getMessage(),
        }

        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            log_object.update(extra_fields)

        if record.exc_info:
            log_object["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_object, default=str)


def _log_level() -> int:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    return getattr(logging, level, logging.INFO)


def setup_global_logging() -> None:
    """
    Configure global logging based on environment.

    Safe to call more than once: the root logger ends up with exactly one
    handler.
    """
    level = _log_level()

    if os.getenv("K_SERVICE") is not None:
        try:
            import google.cloud.logging

            client = google.cloud.logging.Client()
            client.setup_logging(log_level=level)
            logging.info("Cloud Logging initialized for Cloud Run.")
            return
        except Exception as e:
            logging.basicConfig(
                level=level,
                format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            )
            logging.warning(f"Cloud Logging setup failed, using basic config: {e}")
            return

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if isinstance(existing.formatter, JsonFormatter):
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
