"""In-process ASGI client for the cratedigger API tests.

Requests go straight through the FastAPI app (lifespan included) with no
socket, so the import and artist-search routes can be exercised against the
fake collaborators installed through dependency overrides.
"""

from __future__ import annotations

import asyncio
import json
from collections import OrderedDict
from types import TracebackType
from typing import Any, AsyncContextManager, Dict, Mapping, Optional, Type

from fastapi import FastAPI


class SimpleResponse:
    def __init__(self, status_code: int, body: bytes, headers: Dict[str, str]) -> None:
        self.status_code = status_code
        self._body = body
        self.headers = headers

    def json(self) -> Any:
        if not self._body:
            return None
        return json.loads(self._body.decode("utf-8"))

    @property
    def text(self) -> str:
        return self._body.decode("utf-8") if self._body else ""


class SimpleTestClient:
    """Drive the ASGI app on a private event loop, running the lifespan."""

    def __init__(
        self,
        app: FastAPI,
        *,
        default_headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.app = app
        self._loop = asyncio.new_event_loop()
        self._lifespan_context: Optional[AsyncContextManager[None]] = None
        self._default_headers = {k.lower(): v for k, v in (default_headers or {}).items()}

    def __enter__(self) -> "SimpleTestClient":
        asyncio.set_event_loop(self._loop)
        self._lifespan_context = self.app.router.lifespan_context(self.app)
        self._loop.run_until_complete(self._lifespan_context.__aenter__())
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        if self._lifespan_context is not None:
            self._loop.run_until_complete(
                self._lifespan_context.__aexit__(exc_type, exc, tb)
            )
            self._lifespan_context = None
        self._loop.close()
        asyncio.set_event_loop(None)

    def get(
        self,
        path: str,
        headers: Optional[Mapping[str, str]] = None,
    ) -> SimpleResponse:
        return self._loop.run_until_complete(self._request("GET", path, headers=headers))

    def post(
        self,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        data: Optional[bytes | str] = None,
        content_type: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> SimpleResponse:
        return self._loop.run_until_complete(
            self._request(
                "POST",
                path,
                json_body=json,
                raw_body=data,
                content_type=content_type,
                headers=headers,
            )
        )

    def options(
        self,
        path: str,
        headers: Optional[Mapping[str, str]] = None,
    ) -> SimpleResponse:
        return self._loop.run_until_complete(self._request("OPTIONS", path, headers=headers))

    async def _request(
        self,
        method: str,
        path: str,
        json_body: Optional[Dict[str, Any]] = None,
        raw_body: Optional[bytes | str] = None,
        content_type: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> SimpleResponse:
        scope: Dict[str, Any] = {
            "type": "http",
            "http_version": "1.1",
            "method": method,
            "scheme": "http",
            "server": ("testserver", 80),
            "client": ("testclient", 50000),
            "path": path,
            "raw_path": path.encode("utf-8"),
            "query_string": b"",
            "headers": [],
        }

        header_items: OrderedDict[bytes, bytes] = OrderedDict()
        for source in (
            self._default_headers,
            {k.lower(): v for k, v in (headers or {}).items()},
        ):
            for key, value in source.items():
                header_items[key.encode("latin-1")] = value.encode("utf-8")
        scope["headers"] = list(header_items.items())

        body = b""
        if json_body is not None:
            body = json.dumps(json_body).encode("utf-8")
            scope["headers"].append((b"content-type", b"application/json"))
        elif raw_body is not None:
            body = raw_body.encode("utf-8") if isinstance(raw_body, str) else raw_body
            if content_type:
                scope["headers"].append((b"content-type", content_type.encode("utf-8")))
        if body:
            scope["headers"].append((b"content-length", str(len(body)).encode("latin-1")))

        response_body = bytearray()
        response_headers: Dict[str, str] = {}
        status_code = 500
        request_complete = False

        async def receive() -> Dict[str, Any]:
            nonlocal request_complete
            if request_complete:
                return {"type": "http.disconnect"}
            request_complete = True
            return {"type": "http.request", "body": body, "more_body": False}

        async def send(message: Dict[str, Any]) -> None:
            nonlocal status_code, response_headers
            if message["type"] == "http.response.start":
                status_code = message["status"]
                response_headers = {
                    key.decode().lower(): value.decode()
                    for key, value in message.get("headers", [])
                }
            elif message["type"] == "http.response.body":
                response_body.extend(message.get("body", b""))

        await self.app(scope, receive, send)
        return SimpleResponse(status_code, bytes(response_body), response_headers)
