"""Spotify catalog client used by the import pipeline."""

from __future__ import annotations

from collections.abc import Callable
import threading
import time
from typing import Any, Dict, Optional

import requests
import spotipy
from spotipy.exceptions import SpotifyException

from cratedigger.config import SpotifyConfig
from cratedigger.core.spotify_token import BearerCredential
from cratedigger.logging import get_logger

logger = get_logger(__name__)

_RETRYABLE_STATUSES = frozenset({429, 502, 503})

SpotifyFactory = Callable[[str], Any]


def _default_factory(timeout: float) -> SpotifyFactory:
    def _build(access_token: str) -> spotipy.Spotify:
        # Retries are handled by SpotifyCatalogClient so failures stay attributable.
        return spotipy.Spotify(
            auth=access_token,
            requests_timeout=timeout,
            retries=0,
            status_retries=0,
        )

    return _build


class SpotifyCatalogClient:
    """Thin wrapper around Spotipy with rate spacing and retries.

    Every call takes the batch's :class:`BearerCredential`; the client never
    fetches or refreshes tokens on its own.
    """

    def __init__(
        self,
        config: SpotifyConfig,
        *,
        client_factory: Optional[SpotifyFactory] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._rate_limit_seconds = config.rate_limit_seconds
        self._max_retries = config.max_retries
        self._factory = client_factory or _default_factory(config.http_timeout)
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_request_time = 0.0
        self._clients: Dict[str, Any] = {}

    def _client_for(self, credential: BearerCredential) -> Any:
        with self._lock:
            client = self._clients.get(credential.access_token)
            if client is None:
                self._clients.clear()
                client = self._factory(credential.access_token)
                self._clients[credential.access_token] = client
            return client

    def _respect_rate_limit(self) -> None:
        with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_request_time
            if elapsed < self._rate_limit_seconds:
                self._sleep(self._rate_limit_seconds - elapsed)
            self._last_request_time = time.monotonic()

    def _execute(self, func, *args, **kwargs):
        backoff = 0.5
        for attempt in range(1, self._max_retries + 1):
            self._respect_rate_limit()
            try:
                return func(*args, **kwargs)
            except SpotifyException as exc:
                status = getattr(exc, "http_status", None)
                if status not in _RETRYABLE_STATUSES or attempt == self._max_retries:
                    raise
                logger.warning("Retrying Spotify API request due to status %s", status)
            except requests.exceptions.RequestException as exc:
                if attempt == self._max_retries:
                    raise
                logger.warning("Retrying Spotify API request due to %s", exc)
            self._sleep(backoff)
            backoff *= 2

    def get_album(self, album_id: str, credential: BearerCredential) -> Dict[str, Any]:
        client = self._client_for(credential)
        return self._execute(client.album, album_id)

    def get_artist(self, artist_id: str, credential: BearerCredential) -> Dict[str, Any]:
        client = self._client_for(credential)
        return self._execute(client.artist, artist_id)

    def search_artists(
        self,
        name: str,
        credential: BearerCredential,
        *,
        limit: int = 1,
    ) -> list[Dict[str, Any]]:
        client = self._client_for(credential)
        payload = self._execute(client.search, q=name, type="artist", limit=limit)
        artists = (payload or {}).get("artists") or {}
        items = artists.get("items") or []
        return [item for item in items if isinstance(item, dict)]


__all__ = ["SpotifyCatalogClient", "SpotifyException"]
