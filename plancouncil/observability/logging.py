"""
Structured Logging

JSON-structured logging with context propagation, layered on the
standard library logging module so every module can keep using
``logging.getLogger(__name__)``.

Records carry whatever log_context() has bound (task slug, mode, step,
trace ids). configure_logging() is called once from the app lifespan.
"""

import contextvars
import json
import logging
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, TextIO

# Fields merged into every record emitted inside log_context()
_log_context: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar(
    "log_context", default={}
)

# Attributes present on every LogRecord; anything else was passed via ``extra``
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime", "context"}


class ContextFilter(logging.Filter):
    """Attaches the current log context to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.context = dict(_log_context.get())
        return True


class StructuredFormatter(logging.Formatter):
    """
    Formats records as JSON objects or single human-readable lines.

    JSON shape: timestamp, level, logger, message, optional data,
    context and error blocks.
    """

    def __init__(self, json_output: bool = True):
        super().__init__()
        self.json_output = json_output

    def _to_dict(self, record: logging.LogRecord) -> dict[str, Any]:
        result: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        data = {
            key: value
            for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        if data:
            result["data"] = data

        context = getattr(record, "context", None)
        if context:
            result["context"] = context

        if record.exc_info and record.exc_info[1] is not None:
            error = record.exc_info[1]
            result["error"] = {
                "message": str(error),
                "type": type(error).__name__,
                "stack_trace": self.formatException(record.exc_info),
            }

        return result

    def format(self, record: logging.LogRecord) -> str:
        payload = self._to_dict(record)

        if self.json_output:
            return json.dumps(payload, default=str)

        output = (
            f"[{datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S')}] "
            f"{record.levelname:8s} {payload['message']}"
        )
        if payload.get("context"):
            output += f" | {payload['context']}"
        if payload.get("data"):
            output += f" | {payload['data']}"
        if payload.get("error"):
            output += f" | ERROR: {payload['error']['message']}"
        return output


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """
    Context manager for adding context to logs.

    Usage:
        with log_context(task_slug="add-auth", step=2):
            logger.info("Accumulated step output")
    """
    current = _log_context.get()
    token = _log_context.set({**current, **kwargs})

    try:
        yield
    finally:
        _log_context.reset(token)


def current_log_context() -> dict[str, Any]:
    """Return a copy of the active log context."""
    return dict(_log_context.get())


def configure_logging(
    level: str = "INFO",
    log_format: str = "json",
    stream: TextIO | None = None,
) -> logging.Logger:
    """Configure and return the package logger."""
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter(json_output=log_format == "json"))
    handler.addFilter(ContextFilter())

    logger = logging.getLogger("plancouncil")
    logger.handlers = [handler]
    logger.setLevel(level)
    logger.propagate = False

    return logger
