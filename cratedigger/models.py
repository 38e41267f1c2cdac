"""Database models for cratedigger."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)

from cratedigger.db import Base


def _utcnow() -> datetime:
    """Return a naive UTC timestamp for ORM defaults."""

    return datetime.now(UTC).replace(tzinfo=None)


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(64), primary_key=True)
    username = Column(String(255), unique=True, nullable=True)
    role = Column(String(32), nullable=False, default="user")
    created_at = Column(DateTime, default=_utcnow, nullable=False)


class AuthSession(Base):
    __tablename__ = "auth_sessions"

    token_digest = Column(String(64), primary_key=True)
    user_id = Column(
        String(64),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


class Release(Base):
    __tablename__ = "releases"
    __table_args__ = (UniqueConstraint("spotify_url", name="uq_releases_spotify_url"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(512), nullable=False)
    release_type = Column(String(32), nullable=False)
    cover_url = Column(String(2048), nullable=True)
    genres = Column(JSON, nullable=False, default=list)
    spotify_url = Column(String(1024), nullable=False)
    release_date = Column(String(16), nullable=True)
    track_count = Column(Integer, nullable=False, default=0)
    created_by = Column(String(64), nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)


class Artist(Base):
    __tablename__ = "artists"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(512), unique=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


class ReleaseArtist(Base):
    __tablename__ = "release_artists"

    release_id = Column(
        Integer,
        ForeignKey("releases.id", ondelete="CASCADE"),
        primary_key=True,
    )
    position = Column(Integer, primary_key=True)
    artist_id = Column(
        Integer,
        ForeignKey("artists.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


class Track(Base):
    __tablename__ = "tracks"
    __table_args__ = (Index("ix_tracks_release_number", "release_id", "track_number"),)

    id = Column(Integer, primary_key=True, index=True)
    release_id = Column(
        Integer,
        ForeignKey("releases.id", ondelete="CASCADE"),
        nullable=False,
    )
    name = Column(String(512), nullable=False)
    track_number = Column(Integer, nullable=False)
    duration_ms = Column(Integer, nullable=False, default=0)
    preview_url = Column(String(2048), nullable=True)


class TrackCredit(Base):
    __tablename__ = "track_credits"

    id = Column(Integer, primary_key=True, index=True)
    track_id = Column(
        Integer,
        ForeignKey("tracks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False, default=0)
    name = Column(String(512), nullable=False)
    role = Column(String(64), nullable=False)
