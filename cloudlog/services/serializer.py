"""Generic JSON rendering of enriched records.

Knows nothing about Cloud Logging; it turns a mapping into text according
to the batch/newline/empty-context/stacktrace flags.
"""

from __future__ import annotations

import json
import traceback
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel

from cloudlog.config import BATCH_MODE_JSON, BATCH_MODE_NEWLINES, FormatterSettings
from cloudlog.services.error_report import ExceptionInfo
from cloudlog.services.timestamps import format_time

_SCALARS = (str, int, float, bool, type(None))


class JsonSerializer:
    """Renders mappings as single-line JSON objects or batches of them."""

    def __init__(
        self,
        batch_mode: int = BATCH_MODE_JSON,
        append_newline: bool = True,
        ignore_empty_context_and_extra: bool = True,
        include_stacktraces: bool = True,
    ) -> None:
        self.batch_mode = batch_mode
        self.append_newline = append_newline
        self.ignore_empty_context_and_extra = ignore_empty_context_and_extra
        self.include_stacktraces = include_stacktraces

    @classmethod
    def from_settings(cls, settings: FormatterSettings) -> JsonSerializer:
        return cls(
            batch_mode=settings.batch_mode,
            append_newline=settings.append_newline,
            ignore_empty_context_and_extra=settings.ignore_empty_context_and_extra,
            include_stacktraces=settings.include_stacktraces,
        )

    def serialize(self, record: Mapping[str, Any]) -> str:
        text = self._encode(self._prepare(record))
        return text + "\n" if self.append_newline else text

    def serialize_batch(self, records: Iterable[Mapping[str, Any]]) -> str:
        prepared = [self._prepare(record) for record in records]
        if self.batch_mode == BATCH_MODE_NEWLINES:
            return "\n".join(self._encode(record) for record in prepared)
        return self._encode(prepared)

    def _prepare(self, record: Mapping[str, Any]) -> dict[str, Any]:
        data = dict(record)
        if self.ignore_empty_context_and_extra:
            for key in ("context", "extra"):
                if key in data and isinstance(data[key], Mapping) and not data[key]:
                    del data[key]
        return self.normalize(data)

    @staticmethod
    def _encode(data: Any) -> str:
        return json.dumps(data, ensure_ascii=False, separators=(",", ":"))

    def normalize(self, value: Any) -> Any:
        """Reduce *value* to types ``json`` can encode."""
        if isinstance(value, _SCALARS):
            return value
        if isinstance(value, Mapping):
            return {str(key): self.normalize(item) for key, item in value.items()}
        if isinstance(value, (list, tuple, set, frozenset)):
            return [self.normalize(item) for item in value]
        if isinstance(value, datetime):
            return format_time(value)
        if isinstance(value, date):
            return value.isoformat()
        if isinstance(value, BaseException):
            return self._normalize_exception(value)
        if isinstance(value, ExceptionInfo):
            return self._normalize_exception_info(value)
        if isinstance(value, BaseModel):
            return self.normalize(value.model_dump(mode="json"))
        return str(value)

    def _normalize_exception(self, exc: BaseException) -> dict[str, Any]:
        data: dict[str, Any] = {
            "class": type(exc).__qualname__,
            "message": str(exc),
        }
        entries = traceback.extract_tb(exc.__traceback__)
        if entries:
            data["file"] = f"{entries[-1].filename}:{entries[-1].lineno}"
            if self.include_stacktraces:
                data["trace"] = [f"{entry.filename}:{entry.lineno}" for entry in entries]
        if exc.__cause__ is not None:
            data["previous"] = self._normalize_exception(exc.__cause__)
        return data

    def _normalize_exception_info(self, info: ExceptionInfo) -> dict[str, Any]:
        data: dict[str, Any] = {
            "class": info.type_name,
            "message": info.message,
            "file": f"{info.file_path}:{info.line_number}",
        }
        if self.include_stacktraces and info.frames:
            data["trace"] = [f"{frame.file_path}:{frame.line_number}" for frame in info.frames]
        return data
