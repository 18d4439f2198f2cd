"""Process- and request-scoped state read by the formatter.

A ``LoggingContext`` is created once per process and handed to every
formatter.  It owns the process-wide request identifier and knows where to
find the ambient HTTP request and process invocation details, so the
enricher itself never touches globals.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from contextvars import ContextVar, Token
from datetime import datetime

from cloudlog.models.schemas import ProcessSnapshot, RequestSnapshot

logger = logging.getLogger(__name__)

# Request being served by this task/thread; inherited by asyncio children.
current_request: ContextVar[RequestSnapshot | None] = ContextVar("current_request", default=None)

# Width of the uniqueness token; matches a uniqid()-style id.
_TOKEN_WIDTH = 13


def bind_request(snapshot: RequestSnapshot) -> Token:
    return current_request.set(snapshot)


def reset_request(token: Token) -> None:
    current_request.reset(token)


def generate_request_id(now: datetime | None = None) -> str:
    """Return ``"YYYY/mm/dd-HH:MM:SS-"`` followed by a random hex token."""
    now = now or datetime.now()
    return now.strftime("%Y/%m/%d-%H:%M:%S-") + uuid.uuid4().hex[:_TOKEN_WIDTH]


class LoggingContext:
    """Shared, once-initialised state for all formatters of a process."""

    def __init__(
        self,
        request_provider: Callable[[], RequestSnapshot | None] | None = None,
        process_provider: Callable[[], ProcessSnapshot] | None = None,
        request_id_factory: Callable[[], str] = generate_request_id,
    ) -> None:
        self._request_provider = request_provider or current_request.get
        self._process_provider = process_provider
        self._request_id_factory = request_id_factory
        self._request_id: str | None = None
        self._process: ProcessSnapshot | None = None
        self._lock = threading.Lock()

    @property
    def request_id(self) -> str:
        """Identifier shared by every record this process emits."""
        if self._request_id is None:
            with self._lock:
                if self._request_id is None:
                    self._request_id = self._request_id_factory()
                    logger.debug("Generated process request id %s", self._request_id)
        return self._request_id

    def request(self) -> RequestSnapshot | None:
        return self._request_provider()

    def process(self) -> ProcessSnapshot:
        if self._process_provider is not None:
            return self._process_provider()
        if self._process is None:
            self._process = ProcessSnapshot.from_runtime()
        return self._process
