"""Request correlation IDs.

Every request, including ones the gatekeeper halts, carries an
X-Request-ID on its response. An upstream proxy's id is kept when it is a
short token of safe characters; anything else is replaced so that a client
cannot inject arbitrary text into gateway logs.

While the request is in flight the id is:
- on request.state.request_id
- returned by get_request_id()
- bound to every structlog event as request_id
"""

from __future__ import annotations

import re
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.observability.logging import bind_request, unbind_request

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128

_SAFE_REQUEST_ID = re.compile(r"[A-Za-z0-9._:\-]+")
_current_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def is_acceptable_request_id(value: str | None) -> bool:
    """Check whether an incoming request id can be reused as-is."""
    if not value or len(value) > MAX_REQUEST_ID_LENGTH:
        return False
    return _SAFE_REQUEST_ID.fullmatch(value) is not None


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assign a correlation id to each request and echo it on the response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        incoming = request.headers.get(REQUEST_ID_HEADER)
        request_id = incoming if is_acceptable_request_id(incoming) else generate_request_id()

        token = _current_request_id.set(request_id)
        request.state.request_id = request_id
        bind_request(request_id)
        try:
            response = await call_next(request)
        finally:
            unbind_request()
            _current_request_id.reset(token)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def generate_request_id() -> str:
    """Generate a new request id (UUID4 hex)."""
    return uuid.uuid4().hex


def get_request_id() -> Optional[str]:
    """Get the id of the request being handled, if any."""
    return _current_request_id.get()
