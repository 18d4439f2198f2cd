"""Request context middleware.

Publishes a snapshot of the request being served so that any record logged
while handling it gets an ``httpRequest`` block.  The snapshot lives in a
context variable, so concurrent requests never see each other's data.
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from cloudlog.context import bind_request, reset_request
from cloudlog.models.schemas import RequestSnapshot


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds the current request for the duration of its handling."""

    async def dispatch(self, request: Request, call_next) -> Response:
        token = bind_request(RequestSnapshot.from_starlette(request))
        try:
            return await call_next(request)
        finally:
            reset_request(token)
