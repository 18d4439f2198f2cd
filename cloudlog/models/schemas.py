"""Snapshots of the ambient environment and Cloud Logging sub-documents.

Output models use camelCase aliases because that is what the Cloud Logging
``LogEntry`` and Error Reporting ``ErrorContext`` schemas expect.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from starlette.requests import Request

# Programs that serve HTTP; their argv is not a script invocation.
_SERVER_LAUNCHERS = frozenset(
    {"uvicorn", "gunicorn", "hypercorn", "daphne", "granian", "waitress-serve"}
)


def _is_server_launcher(script: str) -> bool:
    # "bin/uvicorn" or, under "python -m uvicorn", "...../uvicorn/__main__.py"
    path = os.path.normpath(script)
    name = os.path.splitext(os.path.basename(path))[0]
    if name == "__main__":
        name = os.path.basename(os.path.dirname(path))
    return name in _SERVER_LAUNCHERS


class RequestSnapshot(BaseModel):
    """Read-only view of the HTTP request being served, if any."""

    model_config = ConfigDict(frozen=True)

    method: str | None = None
    uri: str | None = None
    scheme: str | None = None
    host: str | None = None
    referer: str | None = None
    user_agent: str | None = None
    protocol: str | None = None

    # Client IP sources, in trust order.
    client_ip_header: str | None = None
    forwarded_for: str | None = None
    remote_addr: str | None = None

    @classmethod
    def from_starlette(cls, request: Request) -> RequestSnapshot:
        uri = request.url.path
        if request.url.query:
            uri = f"{uri}?{request.url.query}"
        http_version = request.scope.get("http_version")
        headers = request.headers
        return cls(
            method=request.method,
            uri=uri,
            scheme=request.url.scheme or None,
            host=headers.get("host") or request.url.netloc or None,
            referer=headers.get("referer"),
            user_agent=headers.get("user-agent"),
            protocol=f"HTTP/{http_version}" if http_version else None,
            client_ip_header=headers.get("client-ip"),
            forwarded_for=headers.get("x-forwarded-for"),
            remote_addr=request.client.host if request.client else None,
        )

    @classmethod
    def from_environ(cls, environ: Mapping[str, Any]) -> RequestSnapshot:
        """Build a snapshot from a WSGI/CGI environ mapping."""
        uri = environ.get("REQUEST_URI")
        if uri is None and "PATH_INFO" in environ:
            uri = environ.get("SCRIPT_NAME", "") + environ["PATH_INFO"]
            if environ.get("QUERY_STRING"):
                uri = f"{uri}?{environ['QUERY_STRING']}"
        return cls(
            method=environ.get("REQUEST_METHOD"),
            uri=uri,
            scheme=environ.get("REQUEST_SCHEME") or environ.get("wsgi.url_scheme"),
            host=environ.get("HTTP_HOST"),
            referer=environ.get("HTTP_REFERER"),
            user_agent=environ.get("HTTP_USER_AGENT"),
            protocol=environ.get("SERVER_PROTOCOL"),
            client_ip_header=environ.get("HTTP_CLIENT_IP"),
            forwarded_for=environ.get("HTTP_X_FORWARDED_FOR"),
            remote_addr=environ.get("REMOTE_ADDR"),
        )


class ProcessSnapshot(BaseModel):
    """How the current process was invoked."""

    model_config = ConfigDict(frozen=True)

    is_cli: bool = False
    argv: tuple[str, ...] = ()
    script_filename: str | None = None

    @classmethod
    def from_runtime(cls, serving: bool | None = None) -> ProcessSnapshot:
        """Describe this process from ``sys.argv``.

        A process launched by a known web server (uvicorn, gunicorn, ...) is not
        treated as a command-line invocation, so request logs do not carry the
        server command line.  Pass *serving* to override the detection.
        """
        argv = tuple(sys.argv)
        script = argv[0] if argv else ""
        script_filename = os.path.abspath(script) if script and os.path.isfile(script) else None
        if serving is None:
            serving = _is_server_launcher(script)
        return cls(is_cli=bool(script) and not serving, argv=argv, script_filename=script_filename)


class HttpRequest(BaseModel):
    """``LogEntry.httpRequest``; it accepts no custom properties."""

    model_config = ConfigDict(populate_by_name=True)

    request_method: str = Field(alias="requestMethod")
    request_url: str = Field(alias="requestUrl")
    referer: str | None = None
    remote_ip: str | None = Field(default=None, alias="remoteIp")
    user_agent: str | None = Field(default=None, alias="userAgent")
    protocol: str | None = None

    def to_log(self) -> dict[str, str]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ReportLocation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_path: str = Field(alias="filePath")
    function_name: str = Field(default="", alias="functionName")
    line_number: int = Field(default=0, alias="lineNumber")

    def to_log(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class ServiceContext(BaseModel):
    service: str = ""
    version: str = ""

    def to_log(self) -> dict[str, str]:
        return self.model_dump()
