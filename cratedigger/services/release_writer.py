"""Idempotent persistence of normalized releases."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import Select, delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from cratedigger.db import session_scope
from cratedigger.errors import ReleasePersistenceError
from cratedigger.logging import get_logger
from cratedigger.models import Artist, Release, ReleaseArtist, Track, TrackCredit
from cratedigger.services.release_normalizer import ArtistRef, NormalizedRelease, TrackRecord

logger = get_logger(__name__)


@dataclass(slots=True, frozen=True)
class ReleaseRow:
    id: int
    spotify_url: str
    name: str
    created: bool
    updated_at: datetime


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ReleaseWriter:
    """Upsert releases keyed on their canonical Spotify URL.

    An existing release has every field and child row replaced, never merged.
    """

    def __init__(self, *, now_factory: Callable[[], datetime] | None = None) -> None:
        self._now_factory = now_factory or _utcnow

    def _now(self) -> datetime:
        return self._now_factory().replace(tzinfo=None)

    def upsert(self, release: NormalizedRelease) -> ReleaseRow:
        for attempt in range(2):
            try:
                with session_scope() as session:
                    return self._upsert(session, release)
            except IntegrityError as exc:
                # Another writer inserted the same URL between select and insert.
                if attempt == 0:
                    logger.info("Retrying release upsert after conflict: %s", release.spotify_url)
                    continue
                raise ReleasePersistenceError(
                    f"Conflict while storing {release.spotify_url}: {exc.orig}",
                    link=release.spotify_url,
                ) from exc
            except SQLAlchemyError as exc:
                raise ReleasePersistenceError(
                    f"Failed to store {release.spotify_url}: {exc}",
                    link=release.spotify_url,
                ) from exc
        raise ReleasePersistenceError(  # pragma: no cover - loop always returns or raises
            f"Release upsert failed after retries: {release.spotify_url}",
            link=release.spotify_url,
        )

    def _upsert(self, session: Session, release: NormalizedRelease) -> ReleaseRow:
        timestamp = self._now()
        statement: Select[tuple[Release]] = (
            select(Release).where(Release.spotify_url == release.spotify_url).limit(1)
        )
        record = session.execute(statement).scalars().first()
        created = record is None
        if record is None:
            record = Release(spotify_url=release.spotify_url, created_at=timestamp)
            session.add(record)
        else:
            self._clear_children(session, int(record.id))

        record.name = release.name
        record.release_type = release.release_type
        record.cover_url = release.cover_url
        record.genres = list(release.genres)
        record.release_date = release.release_date
        record.track_count = release.track_count
        record.created_by = release.created_by
        record.updated_at = timestamp
        session.flush()

        release_id = int(record.id)
        self._write_artists(session, release_id, release.artists)
        self._write_tracks(session, release_id, release.tracks)
        session.flush()

        return ReleaseRow(
            id=release_id,
            spotify_url=record.spotify_url,
            name=record.name,
            created=created,
            updated_at=record.updated_at,
        )

    @staticmethod
    def _clear_children(session: Session, release_id: int) -> None:
        track_ids = select(Track.id).where(Track.release_id == release_id)
        for statement in (
            delete(TrackCredit).where(TrackCredit.track_id.in_(track_ids)),
            delete(Track).where(Track.release_id == release_id),
            delete(ReleaseArtist).where(ReleaseArtist.release_id == release_id),
        ):
            session.execute(statement.execution_options(synchronize_session=False))

    @staticmethod
    def _artist_id(session: Session, name: str) -> int:
        artist = session.execute(select(Artist).where(Artist.name == name).limit(1)).scalars().first()
        if artist is None:
            artist = Artist(name=name)
            session.add(artist)
            session.flush()
        return int(artist.id)

    def _write_artists(
        self,
        session: Session,
        release_id: int,
        artists: Sequence[ArtistRef],
    ) -> None:
        for position, artist in enumerate(artists):
            session.add(
                ReleaseArtist(
                    release_id=release_id,
                    position=position,
                    artist_id=self._artist_id(session, artist.name),
                )
            )

    @staticmethod
    def _write_tracks(
        session: Session,
        release_id: int,
        tracks: Sequence[TrackRecord],
    ) -> None:
        for track in tracks:
            row = Track(
                release_id=release_id,
                name=track.name,
                track_number=track.track_number,
                duration_ms=track.duration_ms,
                preview_url=track.preview_url,
            )
            session.add(row)
            session.flush()
            for position, credit in enumerate(track.credits):
                session.add(
                    TrackCredit(
                        track_id=int(row.id),
                        position=position,
                        name=credit.name,
                        role=credit.role,
                    )
                )


__all__ = ["ReleaseRow", "ReleaseWriter"]
