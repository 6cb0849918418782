"""Logging setup: stdlib handlers for application logs, structlog for audit events."""

import json
import logging
import re
import sys
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog


TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
AUDIT_LOGGER = "carda.audit"

# Attributes every LogRecord carries; anything else was passed via ``extra``.
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}

_SENSITIVE = re.compile(r"pass(word)?|secret|token|api_?key|authorization|private_key", re.I)

_fields = threading.local()


def _bound_fields() -> Dict[str, Any]:
    return getattr(_fields, "data", {})


class StructuredFormatter(logging.Formatter):
    """Render each record as one JSON object.

    Fields bound with ``log_context`` and ``extra`` keys are merged in, and
    values under credential-like keys are replaced with ``[REDACTED]``.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        payload.update(_bound_fields())
        payload.update(
            (key, value)
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS
        )
        for key in payload:
            if _SENSITIVE.search(key):
                payload[key] = "[REDACTED]"

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(
    format: str = "text",
    level: str = "INFO",
    log_file: Optional[str] = None,
) -> None:
    """Install handlers on the root logger and route structlog through them.

    Args:
        format: "json" for StructuredFormatter output, anything else for plain text
        level: Level name; unknown names fall back to INFO
        log_file: Also write to this file when given
    """
    as_json = format == "json"
    formatter = StructuredFormatter() if as_json else logging.Formatter(TEXT_FORMAT)

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    _configure_structlog(as_json)


def _configure_structlog(as_json: bool) -> None:
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
            if as_json
            else structlog.dev.ConsoleRenderer(colors=False),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def get_audit_logger():
    """structlog logger for merge and undo audit events.

    Events are handed to the ``carda.audit`` stdlib logger. If the host
    application has not configured structlog itself, a plain-text stdlib
    setup is installed so nothing is printed outside the logging tree.
    """
    if not structlog.is_configured():
        _configure_structlog(as_json=False)
    return structlog.get_logger(AUDIT_LOGGER)


def log_event(logger_name: str, event: str, **fields: Any) -> None:
    """Emit ``event`` at INFO with ``fields`` attached as record attributes."""
    logging.getLogger(logger_name).info(event, extra=fields)


@contextmanager
def log_context(**fields: Any):
    """Bind fields to every record formatted on this thread inside the block.

    Example:
        with log_context(operation="merge", primary_id="c-1"):
            logger.info("Merging")
    """
    previous = _bound_fields()
    _fields.data = {**previous, **fields}
    try:
        yield
    finally:
        _fields.data = previous
