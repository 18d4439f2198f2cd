"""Error Reporting enrichment for records at or above the reporting threshold.

Cloud Error Reporting picks up any log entry carrying the
``ReportedErrorEvent`` type and an ``ErrorContext``-shaped ``context`` block.

See https://cloud.google.com/error-reporting/docs/formatting-error-messages
"""

from __future__ import annotations

import logging
import os
import sys
import traceback
from collections.abc import Mapping
from dataclasses import dataclass
from types import FrameType
from typing import Any

from cloudlog.models.schemas import HttpRequest, ReportLocation, ServiceContext

REPORTED_ERROR_EVENT_TYPE = (
    "type.googleapis.com/google.devtools.clouderrorreporting.v1beta1.ReportedErrorEvent"
)

# Frames from these directories are never a "call site".
_SKIPPED_DIRS = (
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))) + os.sep,
    os.path.dirname(os.path.abspath(logging.__file__)) + os.sep,
)


@dataclass(frozen=True)
class SourceLocation:
    file_path: str
    line_number: int
    function: str = ""


@dataclass(frozen=True)
class StackFrame:
    function: str = ""
    class_name: str | None = None
    file_path: str = ""
    line_number: int = 0


@dataclass(frozen=True)
class ExceptionInfo:
    """The parts of an exception Error Reporting needs.

    ``frames`` is ordered innermost first, so ``frames[0]`` is the function
    that raised.  A synthesized exception has no frames.
    """

    message: str
    file_path: str
    line_number: int
    frames: tuple[StackFrame, ...] = ()
    type_name: str = "Exception"

    @classmethod
    def from_exception(
        cls, exc: BaseException, origin: SourceLocation | None = None
    ) -> ExceptionInfo:
        walked = list(traceback.walk_tb(exc.__traceback__))
        frames = tuple(_stack_frame(frame, lineno) for frame, lineno in reversed(walked))
        if frames:
            file_path, line_number = frames[0].file_path, frames[0].line_number
        else:
            # Never raised: no traceback to take a location from.
            location = origin or _call_site()
            file_path, line_number = location.file_path, location.line_number
        return cls(
            message=str(exc),
            file_path=file_path,
            line_number=line_number,
            frames=frames,
            type_name=type(exc).__qualname__,
        )

    @classmethod
    def synthesize(cls, message: str, origin: SourceLocation | None = None) -> ExceptionInfo:
        """Stand-in for records logged at error level without an exception.

        The location is the logging call when *origin* is known, otherwise the
        nearest caller outside this package.  Either way the true origin of
        the problem is lost.
        """
        location = origin or _call_site()
        return cls(message=message, file_path=location.file_path, line_number=location.line_number)


def _stack_frame(frame: FrameType, lineno: int) -> StackFrame:
    code = frame.f_code
    return StackFrame(
        function=code.co_name,
        class_name=_owner_class(frame),
        file_path=code.co_filename,
        line_number=lineno,
    )


def _owner_class(frame: FrameType) -> str | None:
    """Name the class a frame's function is bound to, if any."""
    if frame.f_code.co_argcount == 0:
        return None
    first_arg = frame.f_code.co_varnames[0]
    if first_arg not in ("self", "cls"):
        return None
    bound = frame.f_locals.get(first_arg)
    if bound is None:
        return None
    if first_arg == "cls" and isinstance(bound, type):
        return bound.__name__
    return type(bound).__name__


def _call_site() -> SourceLocation:
    frame = sys._getframe(1)
    while frame is not None:
        filename = os.path.abspath(frame.f_code.co_filename)
        if not filename.startswith(_SKIPPED_DIRS):
            return SourceLocation(filename, frame.f_lineno, frame.f_code.co_name)
        frame = frame.f_back
    # Only reachable when every frame belongs to this package.
    return SourceLocation(os.path.abspath(__file__), sys._getframe().f_lineno)


def resolve_exception(
    candidate: Any, message: str, origin: SourceLocation | None = None
) -> ExceptionInfo:
    """Use *candidate* if it is exception-like, otherwise synthesize one from *message*."""
    if isinstance(candidate, ExceptionInfo):
        return candidate
    if isinstance(candidate, BaseException):
        return ExceptionInfo.from_exception(candidate, origin)
    return ExceptionInfo.synthesize(message, origin)


def function_name(info: ExceptionInfo) -> str:
    if not info.frames:
        return ""
    frame = info.frames[0]
    if frame.class_name and frame.function:
        return f"{frame.class_name}::{frame.function}"
    return frame.class_name or frame.function


def build_error_report(
    record: dict[str, Any],
    *,
    http_request: HttpRequest | None,
    service: str,
    version: str,
    origin: SourceLocation | None = None,
) -> dict[str, Any]:
    """Attach the Error Reporting block to a flattened *record*."""
    info = resolve_exception(record.get("exception"), str(record.get("message", "")), origin)

    # ErrorContext lives under "context"; it is not flattened like the caller's context.
    existing = record.get("context")
    error_context = dict(existing) if isinstance(existing, Mapping) else {}
    if http_request is not None:
        error_context["httpRequest"] = http_request.to_log()
    error_context["reportLocation"] = ReportLocation(
        file_path=info.file_path,
        function_name=function_name(info),
        line_number=info.line_number,
    ).to_log()
    record["context"] = error_context

    if service or version:
        record["serviceContext"] = ServiceContext(service=service, version=version).to_log()

    record["@type"] = REPORTED_ERROR_EVENT_TYPE
    return record
