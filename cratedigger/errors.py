"""Error taxonomy for cratedigger.

Two families live here. :class:`AppError` subclasses abort a request and are
rendered by the API layer; :class:`ReleaseImportError` subclasses stay inside
the import loop and only mark a single link as failed.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
import logging
from typing import Any, ClassVar
from uuid import uuid4

from fastapi import status
from fastapi.responses import JSONResponse

from cratedigger.logging import get_logger

_logger = get_logger(__name__)


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    DEPENDENCY_ERROR = "DEPENDENCY_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    INVALID_LINK = "INVALID_LINK"
    CATALOG_LOOKUP_FAILED = "CATALOG_LOOKUP_FAILED"
    MALFORMED_ALBUM = "MALFORMED_ALBUM"
    PERSISTENCE_FAILED = "PERSISTENCE_FAILED"


class AppError(Exception):
    """Request-level failure carrying its HTTP status and error code."""

    code: ClassVar[ErrorCode] = ErrorCode.INTERNAL_ERROR
    default_status: ClassVar[int] = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: ClassVar[str] = "An unexpected error occurred."
    default_headers: ClassVar[Mapping[str, str] | None] = None

    def __init__(self, message: str | None = None, *, http_status: int | None = None) -> None:
        self.message = message or self.default_message
        self.http_status = http_status or self.default_status
        self.headers = self.default_headers
        super().__init__(self.message)

    def as_response(self, *, request_path: str, method: str) -> JSONResponse:
        return to_response(
            message=self.message,
            code=self.code,
            status_code=self.http_status,
            request_path=request_path,
            method=method,
            headers=self.headers,
        )


class ValidationAppError(AppError):
    code = ErrorCode.VALIDATION_ERROR
    default_status = status.HTTP_400_BAD_REQUEST
    default_message = "Request validation failed."


class AuthenticationRequiredError(AppError):
    """No session token was presented, or it does not resolve to a profile."""

    code = ErrorCode.AUTH_REQUIRED
    default_status = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"
    default_headers = {"WWW-Authenticate": "Bearer"}


class AuthorizationError(AppError):
    code = ErrorCode.FORBIDDEN
    default_status = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden: User is not an admin"


class NotFoundError(AppError):
    code = ErrorCode.NOT_FOUND
    default_status = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found."


class ConfigurationError(AppError):
    """Required settings are missing; raised during startup."""

    code = ErrorCode.CONFIGURATION_ERROR


class DependencyError(AppError):
    """An upstream system failed and the whole request cannot continue."""

    code = ErrorCode.DEPENDENCY_ERROR
    default_status = status.HTTP_502_BAD_GATEWAY
    default_message = "Upstream service is unavailable."


class LinkExtractionError(DependencyError):
    default_message = "Failed to extract links from the discussion board."


class TokenExchangeError(DependencyError):
    default_message = "Failed to get Spotify token"


class InternalServerError(AppError):
    pass


class ReleaseImportError(Exception):
    """Failure confined to one candidate link, tagged with the pipeline stage."""

    code: ClassVar[ErrorCode] = ErrorCode.INTERNAL_ERROR
    stage: ClassVar[str] = "unknown"

    def __init__(self, message: str, *, link: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.link = link


class InvalidAlbumLinkError(ReleaseImportError):
    code = ErrorCode.INVALID_LINK
    stage = "resolve"


class CatalogLookupError(ReleaseImportError):
    code = ErrorCode.CATALOG_LOOKUP_FAILED
    stage = "resolve"

    def __init__(
        self,
        message: str,
        *,
        link: str | None = None,
        http_status: int | None = None,
    ) -> None:
        super().__init__(message, link=link)
        self.http_status = http_status


class MalformedAlbumError(ReleaseImportError):
    code = ErrorCode.MALFORMED_ALBUM
    stage = "normalize"


class ReleasePersistenceError(ReleaseImportError):
    code = ErrorCode.PERSISTENCE_FAILED
    stage = "write"


def to_response(
    *,
    message: str,
    code: ErrorCode,
    status_code: int,
    request_path: str,
    method: str,
    content: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    """Render an error body, tag it with a debug id and log it.

    The body defaults to ``{"error": message}``; endpoints with their own
    failure envelope pass it as ``content``.
    """

    debug_id = uuid4().hex
    response = JSONResponse(
        status_code=status_code,
        content=dict(content) if content is not None else {"error": message},
        headers={**(headers or {}), "X-Debug-Id": debug_id},
    )
    if status_code >= 500:
        level = logging.ERROR
    elif status_code in (401, 403):
        level = logging.WARNING
    else:
        level = logging.INFO
    _logger.log(
        level,
        "%s %s failed with %s: %s",
        method,
        request_path,
        status_code,
        message,
        extra={"event": "api.error", "code": code.value, "debug_id": debug_id},
    )
    return response


__all__ = [
    "AppError",
    "AuthenticationRequiredError",
    "AuthorizationError",
    "CatalogLookupError",
    "ConfigurationError",
    "DependencyError",
    "ErrorCode",
    "InternalServerError",
    "InvalidAlbumLinkError",
    "LinkExtractionError",
    "MalformedAlbumError",
    "NotFoundError",
    "ReleaseImportError",
    "ReleasePersistenceError",
    "TokenExchangeError",
    "ValidationAppError",
    "to_response",
]
