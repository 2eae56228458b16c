"""Structured JSON logging configuration."""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict

REDACTED = "[redacted]"

# Extra fields that may carry credentials; their values never reach the log
SENSITIVE_FIELDS = frozenset({
    "access_token",
    "refresh_token",
    "password",
    "current_password",
    "new_password",
    "code",
    "token_hash",
})


class JSONFormatter(logging.Formatter):
    """One JSON object per record: level, logger, message, then the `extra=` fields."""

    _RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: Dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        for key, value in vars(record).items():
            if key in self._RECORD_ATTRS or callable(value):
                continue
            entry[key] = REDACTED if key in SENSITIVE_FIELDS else value

        return json.dumps(entry, default=str)


def setup_structured_logging() -> None:
    """Install the JSON formatter on the root and uvicorn access loggers."""
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root_logger = logging.getLogger()
    root_logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    root_logger.handlers = [handler]

    uvicorn_access = logging.getLogger("uvicorn.access")
    uvicorn_access.handlers = [handler]
    uvicorn_access.setLevel(logging.WARNING)

    # supabase-py logs every HTTP request it makes through httpx at INFO
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)
