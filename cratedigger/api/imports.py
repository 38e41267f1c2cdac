"""Administrator-triggered import endpoint."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, Request, Response, status
from fastapi.responses import JSONResponse

from cratedigger.api.schemas import ErrorResponse, ImportResponse
from cratedigger.dependencies import get_reddit_import_orchestrator
from cratedigger.errors import (
    AppError,
    AuthenticationRequiredError,
    AuthorizationError,
    ErrorCode,
    to_response,
)
from cratedigger.logging import get_logger
from cratedigger.orchestrator.reddit_import import RedditImportOrchestrator

router = APIRouter(prefix="/api", tags=["Import"])

logger = get_logger(__name__)


def failure_envelope(message: str) -> dict[str, Any]:
    return {
        "success": False,
        "error": message,
        "importedCount": 0,
        "failedCount": 0,
        "importedAlbums": [],
        "failedAlbums": [],
    }


@router.post(
    "/reddit-import",
    response_model=ImportResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        500: {"model": ImportResponse},
        502: {"model": ImportResponse},
    },
)
async def reddit_import(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    orchestrator: RedditImportOrchestrator = Depends(get_reddit_import_orchestrator),
) -> Response:
    """Import every album linked from the latest discussion-board posts."""

    try:
        result = await orchestrator.run(authorization)
    except (AuthenticationRequiredError, AuthorizationError):
        raise
    except AppError as exc:
        return to_response(
            message=exc.message,
            code=exc.code,
            status_code=exc.http_status,
            request_path=request.url.path,
            method=request.method,
            content=failure_envelope(exc.message),
        )
    except Exception as exc:
        logger.exception("Import batch failed unexpectedly")
        return to_response(
            message=str(exc) or "Import failed",
            code=ErrorCode.INTERNAL_ERROR,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            request_path=request.url.path,
            method=request.method,
            content=failure_envelope(str(exc) or "Import failed"),
        )

    return JSONResponse(status_code=status.HTTP_200_OK, content=result.to_payload())


__all__ = ["failure_envelope", "router"]
