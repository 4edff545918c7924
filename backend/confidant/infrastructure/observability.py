"""Structured Logging — JSON lines on stderr for the broker process.

Invariants:
    - Every line carries timestamp (from the record), level, logger and message
    - Broker extras (ids, admin action, attempt, error fields) surfaced when present
    - Chat handles are never passed as extras (anonymity of users)
    - setup_logging replaces its own handler on repeat calls, never stacks them

Design Decisions:
    - stdlib logging + a small JSONFormatter, no logging library
    - SQLAlchemy engine and httpx loggers pinned to WARNING: per-statement and
      per-request lines would drown the broker's own events
"""

import json
import logging
from datetime import datetime, timezone

STRUCTURED_FIELDS = (
    "session_id", "counselor_id", "user_id", "report_id", "appeal_id",
    "admin_id", "action", "attempt", "path", "error_code", "error_type", "error",
)

QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "httpcore")

_HANDLER_NAME = "confidant"


def _jsonable(value):
    if isinstance(value, (bool, int, float)):
        return value
    return str(value)


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in STRUCTURED_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                log[key] = _jsonable(val)
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False)


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)

    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"),
        )
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
