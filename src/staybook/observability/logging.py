"""Structured JSON logging with correlation ID support.

Domain modules log through ``logging.getLogger(__name__)`` and attach
structured data as ``extra={"extra_fields": {...}}``. ``configure_logging``
installs the JSON formatter on the ``staybook`` logger tree once, so every
module logger inherits it.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from .correlation import get_correlation_id

_ROOT_LOGGER = "staybook"


class JsonFormatter(logging.Formatter):
    """JSON formatter that includes correlation ID."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = get_correlation_id()
        if correlation_id:
            log_obj["correlationId"] = correlation_id

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_obj.update(record.extra_fields)

        return json.dumps(log_obj, default=str)


def configure_logging(level: str | None = None) -> logging.Logger:
    """Attach the JSON handler to the package root logger (idempotent).

    Args:
        level: Log level name. Defaults to LOG_LEVEL env var, then INFO.

    Returns:
        The configured ``staybook`` root logger.
    """
    root = logging.getLogger(_ROOT_LOGGER)
    if not any(isinstance(h.formatter, JsonFormatter) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonFormatter())
        root.addHandler(handler)

    root.setLevel((level or os.environ.get("LOG_LEVEL", "INFO")).upper())
    return root


def get_logger(name: str) -> logging.Logger:
    """Get a logger configured for JSON output."""
    configure_logging()
    return logging.getLogger(name)
