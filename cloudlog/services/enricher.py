"""Rewrites a generic log record into the Cloud Logging structured shape.

Pipeline, applied in order to a copy of the record:

    severity/time → flatten context → httpRequest + requestId
    → scriptCommand/scriptFileName → Error Reporting block → prune

See https://cloud.google.com/logging/docs/structured-logging
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from cloudlog.config import FormatterSettings
from cloudlog.context import LoggingContext
from cloudlog.models.schemas import HttpRequest, ProcessSnapshot, RequestSnapshot
from cloudlog.services.client_ip import resolve_client_ip
from cloudlog.services.error_report import SourceLocation, build_error_report
from cloudlog.services.timestamps import format_time

# Source-schema keys with no place in a LogEntry.
_PRUNED_KEYS = ("level", "level_name", "datetime")


def build_http_request(request: RequestSnapshot) -> HttpRequest | None:
    """Describe the ambient request, or return None outside of one."""
    if not request.method or not request.uri:
        return None

    if request.scheme and request.host:
        url = f"{request.scheme}://{request.host}{request.uri}"
    else:
        # Best effort: a bare URI beats dropping the field.
        url = request.uri

    return HttpRequest(
        request_method=request.method,
        request_url=url,
        referer=request.referer or None,
        remote_ip=resolve_client_ip(request) or None,
        user_agent=request.user_agent or None,
        protocol=request.protocol or None,
    )


class RecordEnricher:
    """Turns one log record mapping into a Cloud Logging payload."""

    def __init__(self, settings: FormatterSettings, context: LoggingContext) -> None:
        self._settings = settings
        self._context = context

    @property
    def settings(self) -> FormatterSettings:
        return self._settings

    def enrich(
        self, record: Mapping[str, Any], origin: SourceLocation | None = None
    ) -> dict[str, Any]:
        """Return an enriched copy of *record*; the input is left untouched.

        *origin* is where the record was logged from.  It is only used to
        locate the error when no real exception comes with the record.
        """
        entry = dict(record)

        self._remap_severity(entry)
        self._flatten_context(entry)

        http_request = None
        request = self._context.request()
        if request is not None:
            http_request = build_http_request(request)
        if http_request is not None:
            entry["httpRequest"] = http_request.to_log()
        # httpRequest accepts no custom properties, so the id sits at the root.
        entry["requestId"] = self._context.request_id

        self._add_process_info(entry, self._context.process())

        level = entry.get("level")
        if isinstance(level, int) and level >= self._settings.error_reporting_level:
            build_error_report(
                entry,
                http_request=http_request,
                service=self._settings.service,
                version=self._settings.version,
                origin=origin,
            )

        for key in _PRUNED_KEYS:
            entry.pop(key, None)
        if self._settings.drop_channel:
            entry.pop("channel", None)
        return entry

    @staticmethod
    def _remap_severity(entry: dict[str, Any]) -> None:
        if "level_name" in entry:
            entry["severity"] = entry["level_name"]
        if isinstance(entry.get("datetime"), datetime):
            entry["time"] = format_time(entry["datetime"])

    @staticmethod
    def _flatten_context(entry: dict[str, Any]) -> None:
        """Promote context keys to the top level; they win on collision."""
        if isinstance(entry.get("context"), Mapping):
            context = entry.pop("context")
            entry.update(context)

    @staticmethod
    def _add_process_info(entry: dict[str, Any], process: ProcessSnapshot) -> None:
        if process.is_cli and process.argv:
            entry["scriptCommand"] = " ".join(process.argv)
        if process.script_filename:
            entry["scriptFileName"] = process.script_filename
