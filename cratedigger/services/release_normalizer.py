"""Pure transform from Spotify album payloads into release records."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from cratedigger.errors import MalformedAlbumError

TRACK_CREDIT_ROLE = "Artist"


@dataclass(slots=True, frozen=True)
class ArtistRef:
    name: str


@dataclass(slots=True, frozen=True)
class TrackCredit:
    name: str
    role: str


@dataclass(slots=True, frozen=True)
class TrackRecord:
    name: str
    track_number: int
    duration_ms: int
    preview_url: str | None
    credits: tuple[TrackCredit, ...]


@dataclass(slots=True, frozen=True)
class NormalizedRelease:
    name: str
    release_type: str
    cover_url: str | None
    genres: tuple[str, ...]
    spotify_url: str
    release_date: str | None
    created_by: str
    artists: tuple[ArtistRef, ...]
    tracks: tuple[TrackRecord, ...]

    @property
    def track_count(self) -> int:
        return len(self.tracks)


def _require_text(payload: Mapping[str, Any], key: str, *, context: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise MalformedAlbumError(f"{context} is missing '{key}'")
    return value.strip()


def _require_sequence(value: Any, *, context: str) -> Sequence[Any]:
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes)):
        raise MalformedAlbumError(f"{context} is missing or not a list")
    return value


def _optional_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _positive_int(value: Any, *, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def _artist_names(artists: Sequence[Any], *, context: str) -> list[str]:
    names: list[str] = []
    for index, artist in enumerate(artists):
        if not isinstance(artist, Mapping):
            raise MalformedAlbumError(f"{context}[{index}] is not an object")
        names.append(_require_text(artist, "name", context=f"{context}[{index}]"))
    return names


def _cover_url(images: Any) -> str | None:
    if not isinstance(images, Sequence) or isinstance(images, (str, bytes)) or not images:
        return None
    first = images[0]
    if isinstance(first, Mapping):
        return _optional_text(first.get("url"))
    return None


def _normalize_track(track: Any, position: int) -> TrackRecord:
    context = f"track {position}"
    if not isinstance(track, Mapping):
        raise MalformedAlbumError(f"{context} is not an object")
    credits = tuple(
        TrackCredit(name=name, role=TRACK_CREDIT_ROLE)
        for name in _artist_names(
            _require_sequence(track.get("artists", []), context=f"{context} artists"),
            context=f"{context} artists",
        )
    )
    duration = track.get("duration_ms")
    return TrackRecord(
        name=_require_text(track, "name", context=context),
        track_number=_positive_int(track.get("track_number"), default=position),
        duration_ms=duration if isinstance(duration, int) and duration >= 0 else 0,
        preview_url=_optional_text(track.get("preview_url")),
        credits=credits,
    )


def normalize_album(album: Mapping[str, Any], *, created_by: str) -> NormalizedRelease:
    """Map a raw catalog album onto :class:`NormalizedRelease`.

    Raises :class:`MalformedAlbumError` when a required field is absent.
    """

    if not isinstance(album, Mapping):
        raise MalformedAlbumError("album payload is not an object")

    external_urls = album.get("external_urls")
    if not isinstance(external_urls, Mapping):
        raise MalformedAlbumError("album is missing 'external_urls'")

    artists = _artist_names(
        _require_sequence(album.get("artists"), context="album artists"),
        context="album artists",
    )

    tracks_page = album.get("tracks")
    if not isinstance(tracks_page, Mapping):
        raise MalformedAlbumError("album is missing 'tracks'")
    items = _require_sequence(tracks_page.get("items"), context="album tracks")

    genres = album.get("genres") or []
    if not isinstance(genres, Sequence) or isinstance(genres, (str, bytes)):
        genres = []

    return NormalizedRelease(
        name=_require_text(album, "name", context="album"),
        release_type=_require_text(album, "album_type", context="album"),
        cover_url=_cover_url(album.get("images")),
        genres=tuple(str(genre) for genre in genres if genre),
        spotify_url=_require_text(external_urls, "spotify", context="album external_urls"),
        release_date=_optional_text(album.get("release_date")),
        created_by=created_by,
        artists=tuple(ArtistRef(name=name) for name in artists),
        tracks=tuple(_normalize_track(track, index) for index, track in enumerate(items, 1)),
    )


__all__ = [
    "ArtistRef",
    "NormalizedRelease",
    "TRACK_CREDIT_ROLE",
    "TrackCredit",
    "TrackRecord",
    "normalize_album",
]
