"""Application middleware registration helpers."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cratedigger.config import AppConfig

from .errors import setup_exception_handlers
from .request_id import RequestIDMiddleware

CORS_ALLOWED_METHODS = ("GET", "POST", "OPTIONS")
CORS_ALLOWED_HEADERS = ("authorization", "x-client-info", "apikey", "content-type")


def install_middleware(app: FastAPI, config: AppConfig) -> None:
    """Install CORS, request ids and the exception handlers on ``app``."""

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.security.allowed_origins) or ["*"],
        allow_methods=list(CORS_ALLOWED_METHODS),
        allow_headers=list(CORS_ALLOWED_HEADERS),
        allow_credentials=False,
        expose_headers=["X-Request-ID", "X-Debug-Id"],
    )
    app.add_middleware(RequestIDMiddleware)
    setup_exception_handlers(app)


__all__ = ["install_middleware"]
