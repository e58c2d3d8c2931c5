from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

from app.context import get_correlation_id


_BASE_RECORD_KEYS = set(logging.makeLogRecord({}).__dict__.keys())
_KNOWN_FIELDS = {
    "method",
    "path",
    "status_code",
    "duration_ms",
    "user_id",
    "crm_module",
    "access_level",
    "configured_level",
    "principal_count",
    "max_depth",
    "error",
}
_MAX_ERROR_LENGTH = 500


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "correlation_id", None):
            record.correlation_id = get_correlation_id()
        return True


_DEFAULT_RECORD_FACTORY = logging.getLogRecordFactory()


def _record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
    record = _DEFAULT_RECORD_FACTORY(*args, **kwargs)
    if not getattr(record, "correlation_id", None):
        record.correlation_id = get_correlation_id()
    return record


class JsonLogFormatter(logging.Formatter):
    """Render one JSON object per line with the structured ``extra`` fields under ``fields``."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
        }

        fields = {
            key: value
            for key, value in record.__dict__.items()
            if key in _KNOWN_FIELDS and key not in _BASE_RECORD_KEYS
        }
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)

        error_value = fields.get("error")
        if isinstance(error_value, str):
            fields["error"] = error_value[:_MAX_ERROR_LENGTH]

        payload["fields"] = fields
        return json.dumps(payload, default=str)


def configure_logging(level_name: str | None = None) -> None:
    root_logger = logging.getLogger()
    if getattr(root_logger, "_record_scope_configured", False):
        return

    resolved_name = (level_name or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, resolved_name, logging.INFO)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JsonLogFormatter())
    handler.addFilter(CorrelationIdFilter())

    root_logger.handlers.clear()
    root_logger.filters.clear()
    root_logger.setLevel(level)
    logging.setLogRecordFactory(_record_factory)
    root_logger.addHandler(handler)
    root_logger._record_scope_configured = True  # type: ignore[attr-defined]
