"""Request and response models for the public API."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ImportResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    imported_count: int = Field(alias="importedCount")
    failed_count: int = Field(alias="failedCount")
    imported_albums: List[str] = Field(default_factory=list, alias="importedAlbums")
    failed_albums: List[str] = Field(default_factory=list, alias="failedAlbums")
    error: Optional[str] = None


class ArtistSearchRequest(BaseModel):
    name: Optional[str] = None


class ArtistResponse(BaseModel):
    id: str
    name: str
    genres: List[str] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    error: str


__all__ = ["ArtistResponse", "ArtistSearchRequest", "ErrorResponse", "ImportResponse"]
