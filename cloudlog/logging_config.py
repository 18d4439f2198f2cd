"""Structured JSON logging for Google Cloud Logging integration.

Cloud Run captures structured JSON from stdout as Cloud Logging entries.
Entries at or above the error reporting level are additionally picked up by
Cloud Error Reporting.

Usage::

    from cloudlog.logging_config import setup_logging

    setup_logging()                                   # call once at startup
    logger.info("Charged card", extra={"order": 42})  # "order" lands at the root
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import IO, Any

from cloudlog.config import FormatterSettings, parse_level
from cloudlog.context import LoggingContext
from cloudlog.dependencies import get_logging_context
from cloudlog.services.enricher import RecordEnricher
from cloudlog.services.error_report import SourceLocation
from cloudlog.services.serializer import JsonSerializer

logger = logging.getLogger(__name__)

# Attributes every LogRecord has; anything else came in through ``extra=``.
_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def record_to_mapping(record: logging.LogRecord) -> dict[str, Any]:
    """Convert a stdlib LogRecord into the generic record mapping."""
    context: dict[str, Any] = {
        key: value
        for key, value in vars(record).items()
        if key not in _RESERVED_ATTRS and key != "context"
    }
    explicit = getattr(record, "context", None)
    if isinstance(explicit, Mapping):
        context.update(explicit)
    if record.exc_info and record.exc_info[1] is not None:
        context["exception"] = record.exc_info[1]

    return {
        "message": record.getMessage(),
        "context": context,
        "level": record.levelno,
        "level_name": record.levelname,
        "channel": record.name,
        "datetime": datetime.fromtimestamp(record.created, tz=timezone.utc),
        "extra": {},
    }


def record_origin(record: logging.LogRecord) -> SourceLocation:
    return SourceLocation(record.pathname, record.lineno, record.funcName or "")


class CloudLoggingFormatter(logging.Formatter):
    """Formats log records as JSON for Cloud Logging ingestion."""

    def __init__(
        self,
        settings: FormatterSettings | None = None,
        context: LoggingContext | None = None,
        serializer: JsonSerializer | None = None,
    ) -> None:
        super().__init__()
        self.settings = settings or FormatterSettings.load()
        self.context = context or get_logging_context()
        self.serializer = serializer or JsonSerializer.from_settings(self.settings)
        self.enricher = RecordEnricher(self.settings, self.context)
        # Pin the process-wide id as soon as a formatter exists.
        self.context.request_id

    def enrich(self, record: logging.LogRecord) -> dict[str, Any]:
        return self.enricher.enrich(record_to_mapping(record), origin=record_origin(record))

    def format(self, record: logging.LogRecord) -> str:
        return self.serializer.serialize(self.enrich(record))

    def format_batch(self, records: Iterable[logging.LogRecord]) -> str:
        return self.serializer.serialize_batch(self.enrich(record) for record in records)


def setup_logging(
    settings: FormatterSettings | None = None,
    level: str | int | None = None,
    stream: IO[str] | None = None,
) -> CloudLoggingFormatter:
    """Configure the root logger with Cloud Logging JSON output.

    Call this once at app startup.  All loggers created with
    logging.getLogger(__name__) will inherit this configuration.
    """
    settings = settings or FormatterSettings.load()
    formatter = CloudLoggingFormatter(settings)
    # The serializer already terminates each entry.
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.terminator = ""
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(parse_level(level if level is not None else settings.log_level, logging.INFO))

    # Quiet down noisy third-party loggers
    for name in ("uvicorn.access", "httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug(
        "Cloud Logging configured (error reporting level=%s, service=%s)",
        logging.getLevelName(settings.error_reporting_level),
        settings.service or "unset",
    )
    return formatter
