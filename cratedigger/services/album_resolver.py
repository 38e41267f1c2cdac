"""Resolve candidate links into raw Spotify album payloads."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
import re
from typing import Any

import requests
from spotipy.exceptions import SpotifyException

from cratedigger.core.spotify_client import SpotifyCatalogClient
from cratedigger.core.spotify_token import BearerCredential
from cratedigger.errors import CatalogLookupError, InvalidAlbumLinkError
from cratedigger.logging import get_logger

logger = get_logger(__name__)

ALBUM_PATH_MARKER = "/album/"
_ALBUM_ID_PATTERN = re.compile(r"^[A-Za-z0-9]+$")


def parse_album_id(link: str) -> str:
    """Return the catalog id between ``/album/`` and the optional query string."""

    _, marker, remainder = (link or "").partition(ALBUM_PATH_MARKER)
    if not marker:
        raise InvalidAlbumLinkError(f"Not an album link: {link!r}", link=link)
    album_id = remainder.split("?", 1)[0].split("#", 1)[0].rstrip("/")
    if not album_id or not _ALBUM_ID_PATTERN.match(album_id):
        raise InvalidAlbumLinkError(f"Could not parse album id from {link!r}", link=link)
    return album_id


class AlbumResolver:
    """Fetch album metadata for one link using the batch credential.

    When ``genre_fallback`` is enabled and the album carries no genres, the
    first artist's genres are copied onto the payload.
    """

    def __init__(self, catalog: SpotifyCatalogClient, *, genre_fallback: bool = True) -> None:
        self._catalog = catalog
        self._genre_fallback = genre_fallback

    async def resolve(self, link: str, credential: BearerCredential) -> Mapping[str, Any]:
        album_id = parse_album_id(link)
        try:
            album = await asyncio.to_thread(self._catalog.get_album, album_id, credential)
        except SpotifyException as exc:
            raise CatalogLookupError(
                f"Failed to fetch album {album_id}: {exc.msg}",
                link=link,
                http_status=exc.http_status,
            ) from exc
        except requests.exceptions.RequestException as exc:
            raise CatalogLookupError(
                f"Failed to fetch album {album_id}: {exc}", link=link
            ) from exc

        if not isinstance(album, Mapping):
            raise CatalogLookupError(f"Empty catalog response for album {album_id}", link=link)

        if self._genre_fallback and not album.get("genres"):
            genres = await self._artist_genres(album, credential)
            if genres:
                album = {**album, "genres": genres}
        return album

    async def _artist_genres(
        self,
        album: Mapping[str, Any],
        credential: BearerCredential,
    ) -> list[str]:
        artists = album.get("artists") or []
        if not artists or not isinstance(artists[0], Mapping):
            return []
        artist_id = artists[0].get("id")
        if not artist_id:
            return []
        try:
            artist = await asyncio.to_thread(self._catalog.get_artist, artist_id, credential)
        except (SpotifyException, requests.exceptions.RequestException) as exc:
            logger.warning("Artist genre lookup failed for %s: %s", artist_id, exc)
            return []
        genres = (artist or {}).get("genres") or []
        return [str(genre) for genre in genres if genre]


__all__ = ["ALBUM_PATH_MARKER", "AlbumResolver", "parse_album_id"]
