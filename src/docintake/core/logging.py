"""Structured logging for the document intake service.

Every line written while an event is being handled carries the event id and
the blob it concerns, so quarantine and classification logs for one
attachment can be pulled together in Cloud Logging.
"""

import contextvars
import json
import logging
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

_log_context: contextvars.ContextVar[Dict[str, str]] = contextvars.ContextVar("log_context", default={})

# Attributes present on every LogRecord; anything else came in through extra={...}
_RECORD_ATTRIBUTES = frozenset(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {"message"}

_NOISY_LOGGERS = ("google", "urllib3", "httpx", "httpcore")


@contextmanager
def log_context(**fields: Optional[str]) -> Iterator[None]:
    """Attach fields (event_id, blob_uri, ...) to every log line in this task."""
    merged = dict(_log_context.get())
    merged.update({key: value for key, value in fields.items() if value is not None})
    token = _log_context.set(merged)
    try:
        yield
    finally:
        _log_context.reset(token)


def current_log_context() -> Dict[str, str]:
    return dict(_log_context.get())


class CloudLoggingFormatter(logging.Formatter):
    """Single-line JSON records in the shape Cloud Logging parses.

    Errors carry a serviceContext and the formatted traceback in stack_trace
    so Error Reporting groups them per service version.
    """

    SEVERITY_MAP = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARNING",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
    }

    def __init__(self, service: str = "docintake", version: str = "0.1.0"):
        super().__init__()
        self.service = service
        self.version = version

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": self._timestamp(record),
            "severity": self.SEVERITY_MAP.get(record.levelno, "DEFAULT"),
            "message": record.getMessage(),
            "logger": record.name,
            "logging.googleapis.com/sourceLocation": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }
        entry.update(current_log_context())
        entry.update(self._extra_fields(record))

        if record.levelno >= logging.ERROR:
            entry["serviceContext"] = {"service": self.service, "version": self.version}

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            entry["stack_trace"] = self.formatException(record.exc_info)
            entry["error_type"] = exc_type.__name__ if exc_type else "Unknown"
            entry["error_message"] = str(exc_value) if exc_value else ""

        return json.dumps(entry, default=str, ensure_ascii=False)

    @staticmethod
    def _timestamp(record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return created.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    @staticmethod
    def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
        return {key: value for key, value in record.__dict__.items() if key not in _RECORD_ATTRIBUTES}


class _ContextTextFormatter(logging.Formatter):
    """Plain text for local runs, with the event context appended."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = current_log_context()
        if context:
            line += " [" + " ".join(f"{key}={value}" for key, value in sorted(context.items())) + "]"
        return line


def setup_logging(config=None) -> None:
    """Route application and uvicorn logs to stdout.

    Local runs log text at DEBUG; every other environment logs JSON at
    LOG_LEVEL. Chatty client libraries are held at WARNING.
    """
    if config is None:
        from docintake.core.config import settings as config

    if config.ENV == "local":
        level = logging.DEBUG
        formatter: logging.Formatter = _ContextTextFormatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
        )
    else:
        level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
        formatter = CloudLoggingFormatter(config.SERVICE_NAME, config.SERVICE_VERSION)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.addHandler(handler)
        uvicorn_logger.setLevel(level)
        uvicorn_logger.propagate = False

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
