"""Structured JSON Logging for pipeline events

Every record is one JSON object. Records emitted while an issue event or a
sweep is being processed carry that unit of work's correlation id, plus any
pipeline fields passed through ``extra=``.
"""
import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional

from ..config.settings import settings


correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

# Change streams, push calls and the sweep job are chatty at INFO
QUIET_LOGGERS: Dict[str, int] = {
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "pymongo": logging.WARNING,
    "motor": logging.WARNING,
    "apscheduler": logging.WARNING,
}


class JsonFormatter(logging.Formatter):
    """Render a record as a single JSON line"""

    PIPELINE_FIELDS = (
        "issue_id", "rule_id", "trigger", "department", "collection",
        "status", "success_count", "failure_count", "error_type",
    )

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "environment": settings.environment,
            "message": record.getMessage(),
        }

        correlation_id = correlation_id_var.get()
        if correlation_id:
            entry["correlation_id"] = correlation_id

        entry.update({
            field: getattr(record, field)
            for field in self.PIPELINE_FIELDS
            if getattr(record, field, None) is not None
        })

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def _rotating_handler(filename: str, formatter: logging.Formatter, level: int = logging.NOTSET) -> logging.Handler:
    handler = RotatingFileHandler(
        os.path.join(settings.logs_path, filename),
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(level: Optional[str] = None) -> None:
    """Route all logging to stdout, app.log and error.log as JSON"""
    os.makedirs(settings.logs_path, exist_ok=True)
    formatter = JsonFormatter()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel((level or settings.log_level).upper())
    root.addHandler(console)
    root.addHandler(_rotating_handler("app.log", formatter))
    root.addHandler(_rotating_handler("error.log", formatter, logging.ERROR))

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def get_correlation_id() -> Optional[str]:
    return correlation_id_var.get()
