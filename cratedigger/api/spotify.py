"""Catalog lookups exposed to the frontend."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from cratedigger.api.schemas import ArtistResponse, ArtistSearchRequest, ErrorResponse
from cratedigger.dependencies import get_artist_search_service
from cratedigger.errors import ValidationAppError, to_response
from cratedigger.services.artist_search import ArtistNotFoundError, ArtistSearchService

router = APIRouter(prefix="/api/spotify", tags=["Spotify"])


@router.post(
    "/search-artist",
    response_model=ArtistResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def search_artist(
    request: Request,
    payload: Optional[ArtistSearchRequest] = Body(default=None),
    service: ArtistSearchService = Depends(get_artist_search_service),
) -> Response:
    name = (payload.name if payload is not None else None) or ""
    if not name.strip():
        raise ValidationAppError("Artist name is required")

    try:
        match = await service.search(name.strip())
    except ArtistNotFoundError as exc:
        return to_response(
            message=exc.message,
            code=exc.code,
            status_code=exc.http_status,
            request_path=request.url.path,
            method=request.method,
            content={
                "error": exc.message,
                "searchTerm": exc.search_term,
                "results": exc.results,
            },
        )
    return JSONResponse(status_code=status.HTTP_200_OK, content=match.to_payload())


__all__ = ["router"]
