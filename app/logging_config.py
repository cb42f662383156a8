"""
Logging setup

Plain-text logs in development, JSON lines in production. Services log with
``extra={...}``; the structured formatter lifts the known keys into the
JSON payload.
"""

import json
import logging
from datetime import datetime, timezone

from app.config import settings

EXTRA_FIELDS = ("list_id", "user_id", "kind", "operation", "attempt", "error_code", "status_code", "path")


class StructuredFormatter(logging.Formatter):
    """JSON formatter for log aggregation systems."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str | None = None, json_format: bool | None = None) -> None:
    """
    Configure the root logger.

    Args:
        log_level: Logging level name, defaults to settings.log_level
        json_format: Use the JSON formatter, defaults to True in production
    """
    level = (log_level or settings.log_level).upper()
    if json_format is None:
        json_format = settings.environment == "production"

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level))
    root_logger.handlers.clear()

    handler = logging.StreamHandler()
    if json_format:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    root_logger.addHandler(handler)

    # SQL echo is controlled by settings.debug on the engine
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
