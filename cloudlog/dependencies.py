"""Process-wide default LoggingContext.

Formatters built without an explicit context share this one, so every
record in the process carries the same request id.  Hosts and tests can
swap it with ``set_logging_context``.
"""

import logging
import threading

from cloudlog.context import LoggingContext

logger = logging.getLogger(__name__)

_logging_context: LoggingContext | None = None
_lock = threading.Lock()


def get_logging_context() -> LoggingContext:
    global _logging_context
    if _logging_context is None:
        with _lock:
            if _logging_context is None:
                _logging_context = LoggingContext()
                logger.debug("Initialized default LoggingContext")
    return _logging_context


def set_logging_context(context: LoggingContext | None) -> None:
    """Replace the default context; ``None`` makes the next lookup build a fresh one."""
    global _logging_context
    with _lock:
        _logging_context = context
