"""Single artist lookup against the Spotify catalog."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import requests
from spotipy.exceptions import SpotifyException

from cratedigger.core.spotify_client import SpotifyCatalogClient
from cratedigger.core.spotify_token import TokenIssuer
from cratedigger.errors import DependencyError, NotFoundError
from cratedigger.logging import get_logger

logger = get_logger(__name__)


@dataclass(slots=True, frozen=True)
class ArtistMatch:
    id: str
    name: str
    genres: tuple[str, ...]

    def to_payload(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "genres": list(self.genres)}


class ArtistNotFoundError(NotFoundError):
    def __init__(self, search_term: str, results: list[dict[str, Any]]) -> None:
        super().__init__("Artist not found")
        self.search_term = search_term
        self.results = results


class ArtistSearchService:
    def __init__(self, *, token_issuer: TokenIssuer, catalog: SpotifyCatalogClient) -> None:
        self._token_issuer = token_issuer
        self._catalog = catalog

    async def search(self, name: str) -> ArtistMatch:
        credential = await self._token_issuer.issue()
        try:
            items = await asyncio.to_thread(self._catalog.search_artists, name, credential)
        except (SpotifyException, requests.exceptions.RequestException) as exc:
            logger.error("Spotify artist search failed for %r: %s", name, exc)
            raise DependencyError(f"Failed to search Spotify: {exc}") from exc

        if not items:
            raise ArtistNotFoundError(name, items)
        artist = items[0]
        return ArtistMatch(
            id=str(artist.get("id") or ""),
            name=str(artist.get("name") or ""),
            genres=tuple(str(genre) for genre in artist.get("genres") or []),
        )


__all__ = ["ArtistMatch", "ArtistNotFoundError", "ArtistSearchService"]
