"""Exception handlers rendering every failure as ``{"error": message}``."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from cratedigger.errors import AppError, ErrorCode, InternalServerError, to_response
from cratedigger.logging import get_logger

_logger = get_logger(__name__)

_CODES_BY_STATUS = {
    status.HTTP_400_BAD_REQUEST: ErrorCode.VALIDATION_ERROR,
    status.HTTP_401_UNAUTHORIZED: ErrorCode.AUTH_REQUIRED,
    status.HTTP_403_FORBIDDEN: ErrorCode.FORBIDDEN,
    status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND,
    status.HTTP_502_BAD_GATEWAY: ErrorCode.DEPENDENCY_ERROR,
    status.HTTP_503_SERVICE_UNAVAILABLE: ErrorCode.DEPENDENCY_ERROR,
}


def _detail_text(detail: Any) -> str:
    if isinstance(detail, str) and detail.strip():
        return detail
    if isinstance(detail, dict):
        for key in ("error", "message", "detail"):
            value = detail.get(key)
            if isinstance(value, str) and value.strip():
                return value
    return "Request could not be completed."


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Request validation failed."
    first = errors[0]
    where = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    reason = first.get("msg", "Invalid input.")
    return f"{where}: {reason}" if where else reason


async def _on_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return to_response(
        message=_validation_message(exc),
        code=ErrorCode.VALIDATION_ERROR,
        status_code=status.HTTP_400_BAD_REQUEST,
        request_path=request.url.path,
        method=request.method,
    )


async def _on_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return to_response(
        message=_detail_text(exc.detail),
        code=_CODES_BY_STATUS.get(exc.status_code, ErrorCode.INTERNAL_ERROR),
        status_code=exc.status_code,
        request_path=request.url.path,
        method=request.method,
        headers=exc.headers,
    )


async def _on_app_error(request: Request, exc: AppError) -> JSONResponse:
    return exc.as_response(request_path=request.url.path, method=request.method)


async def _on_unhandled(request: Request, exc: Exception) -> JSONResponse:
    _logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return InternalServerError().as_response(
        request_path=request.url.path, method=request.method
    )


def setup_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, _on_validation_error)
    app.add_exception_handler(StarletteHTTPException, _on_http_exception)
    app.add_exception_handler(AppError, _on_app_error)
    app.add_exception_handler(Exception, _on_unhandled)


__all__ = ["setup_exception_handlers"]
