"""Formatter configuration loaded from environment variables.

Uses a frozen dataclass for immutable settings shared by every formatter
instance.  Invalid values are normalised in ``__post_init__`` rather than
rejected so a bad environment never breaks logging.
"""

import logging
import os
from dataclasses import dataclass

BATCH_MODE_JSON = 1
BATCH_MODE_NEWLINES = 2

_BATCH_MODES = {"json": BATCH_MODE_JSON, "newlines": BATCH_MODE_NEWLINES}


def _parse_bool(value: str) -> bool:
    """Parse a boolean from an environment string, accepting common truthy values."""
    return value.strip().lower() in ("true", "1", "yes")


def parse_level(value: str | int, default: int = logging.ERROR) -> int:
    """Turn a level name (``"error"``) or number (``"40"``) into a level number."""
    if isinstance(value, int):
        return value
    value = value.strip()
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value.upper())
    return level if isinstance(level, int) else default


@dataclass(frozen=True)
class FormatterSettings:
    """Immutable formatter settings populated from environment variables."""

    # Error Reporting
    error_reporting_level: int = logging.ERROR
    service: str = ""
    version: str = ""

    # Generic serialization flags
    batch_mode: int = BATCH_MODE_JSON
    append_newline: bool = True
    ignore_empty_context_and_extra: bool = True
    include_stacktraces: bool = True

    # Output shaping
    drop_channel: bool = False
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        """Validate settings after initialisation."""
        if self.batch_mode not in _BATCH_MODES.values():
            object.__setattr__(self, "batch_mode", BATCH_MODE_JSON)
        if self.error_reporting_level < 0:
            object.__setattr__(self, "error_reporting_level", logging.ERROR)
        if not isinstance(logging.getLevelName(self.log_level), int):
            object.__setattr__(self, "log_level", "INFO")

    @classmethod
    def load(cls) -> "FormatterSettings":
        """Create a FormatterSettings instance from the current environment variables.

        ``SERVICE_NAME``/``SERVICE_VERSION`` win over the ``K_SERVICE``/``K_REVISION``
        variables Cloud Run injects into every container.
        """
        return cls(
            error_reporting_level=parse_level(os.environ.get("LOG_ERROR_REPORTING_LEVEL", "ERROR")),
            service=os.environ.get("SERVICE_NAME") or os.environ.get("K_SERVICE", ""),
            version=os.environ.get("SERVICE_VERSION") or os.environ.get("K_REVISION", ""),
            batch_mode=_BATCH_MODES.get(
                os.environ.get("LOG_BATCH_MODE", "json").strip().lower(), BATCH_MODE_JSON
            ),
            append_newline=_parse_bool(os.environ.get("LOG_APPEND_NEWLINE", "true")),
            ignore_empty_context_and_extra=_parse_bool(
                os.environ.get("LOG_IGNORE_EMPTY_CONTEXT", "true")
            ),
            include_stacktraces=_parse_bool(os.environ.get("LOG_INCLUDE_STACKTRACES", "true")),
            drop_channel=_parse_bool(os.environ.get("LOG_DROP_CHANNEL", "false")),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )
