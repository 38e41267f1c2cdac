"""Request id propagation."""

from __future__ import annotations

from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Echo the caller's ``X-Request-ID`` or mint one for the response."""

    def __init__(self, app: ASGIApp, *, header_name: str = REQUEST_ID_HEADER) -> None:
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(  # type: ignore[override]
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request.state.request_id = request.headers.get(self.header_name) or uuid4().hex
        response = await call_next(request)
        response.headers.setdefault(self.header_name, request.state.request_id)
        return response


__all__ = ["REQUEST_ID_HEADER", "RequestIDMiddleware"]
