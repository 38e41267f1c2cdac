"""Batch orchestration for the discussion-board album import."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any, Protocol

from cratedigger.core.spotify_token import BearerCredential, TokenIssuer
from cratedigger.errors import ReleaseImportError
from cratedigger.logging import get_logger
from cratedigger.logging_events import elapsed_ms, log_event, now_ms
from cratedigger.services.access_guard import Identity
from cratedigger.services.release_normalizer import NormalizedRelease, normalize_album
from cratedigger.services.release_writer import ReleaseRow

logger = get_logger(__name__)


class ImportStage(str, Enum):
    IDLE = "idle"
    AUTHORIZING = "authorizing"
    EXTRACTING = "extracting"
    TOKEN_FETCH = "token_fetch"
    PROCESSING_LINKS = "processing_links"
    DONE = "done"
    FATAL = "fatal"


class _Guard(Protocol):
    async def authorize(self, authorization: str | None) -> Identity: ...


class _Extractor(Protocol):
    async def extract(self) -> list[str]: ...


class _Resolver(Protocol):
    async def resolve(self, link: str, credential: BearerCredential) -> Mapping[str, Any]: ...


class _Writer(Protocol):
    def upsert(self, release: NormalizedRelease) -> ReleaseRow: ...


@dataclass(slots=True)
class ImportProgress:
    stage: ImportStage
    current: int = 0
    total: int = 0
    current_url: str | None = None


ProgressCallback = Callable[[ImportProgress], None]


@dataclass(slots=True, frozen=True)
class LinkOutcome:
    link: str
    imported: bool
    album_name: str | None = None
    stage: str | None = None
    error: str | None = None


@dataclass(slots=True)
class BatchResult:
    imported_albums: list[str] = field(default_factory=list)
    failed_albums: list[str] = field(default_factory=list)

    @property
    def imported_count(self) -> int:
        return len(self.imported_albums)

    @property
    def failed_count(self) -> int:
        return len(self.failed_albums)

    def record(self, outcome: LinkOutcome) -> None:
        if outcome.imported:
            self.imported_albums.append(outcome.album_name or outcome.link)
        else:
            self.failed_albums.append(outcome.link)

    def to_payload(self) -> dict[str, Any]:
        return {
            "success": True,
            "importedCount": self.imported_count,
            "failedCount": self.failed_count,
            "importedAlbums": list(self.imported_albums),
            "failedAlbums": list(self.failed_albums),
        }


class RedditImportOrchestrator:
    """Run one import batch.

    ``Idle -> Authorizing -> Extracting -> TokenFetch -> ProcessingLinks -> Done``.
    Errors raised while authorizing, extracting or fetching the token move the
    batch to ``Fatal`` and propagate. Per-link errors are folded into the
    :class:`BatchResult` and never stop the loop.
    """

    def __init__(
        self,
        *,
        guard: _Guard,
        extractor: _Extractor,
        token_issuer: TokenIssuer,
        resolver: _Resolver,
        writer: _Writer,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self._guard = guard
        self._extractor = extractor
        self._token_issuer = token_issuer
        self._resolver = resolver
        self._writer = writer
        self._on_progress = on_progress
        self._stage = ImportStage.IDLE

    @property
    def stage(self) -> ImportStage:
        return self._stage

    def _enter(self, stage: ImportStage) -> None:
        self._stage = stage

    def _notify(self, progress: ImportProgress) -> None:
        """Report progress; a failing callback is logged and never stops the batch."""

        if self._on_progress is None:
            return
        try:
            self._on_progress(progress)
        except Exception:
            logger.exception("Progress callback failed at stage %s", progress.stage.value)

    async def run(self, authorization: str | None) -> BatchResult:
        started = now_ms()
        try:
            self._enter(ImportStage.AUTHORIZING)
            identity = await self._guard.authorize(authorization)
            log_event(logger, "reddit_import.started", user_id=identity.id)

            self._enter(ImportStage.EXTRACTING)
            self._notify(ImportProgress(stage=ImportStage.EXTRACTING))
            links = await self._extractor.extract()

            self._enter(ImportStage.TOKEN_FETCH)
            credential = await self._token_issuer.issue()
        except Exception as exc:
            failed_stage = self._stage
            self._enter(ImportStage.FATAL)
            if failed_stage is not ImportStage.AUTHORIZING:
                log_event(
                    logger,
                    "reddit_import.aborted",
                    stage=failed_stage.value,
                    error=str(exc),
                    level=logging.ERROR,
                )
            raise

        self._enter(ImportStage.PROCESSING_LINKS)
        result = BatchResult()
        total = len(links)
        for index, link in enumerate(links, 1):
            self._notify(
                ImportProgress(
                    stage=ImportStage.PROCESSING_LINKS,
                    current=index,
                    total=total,
                    current_url=link,
                )
            )
            outcome = await self._process_link(link, credential, identity)
            result.record(outcome)

        self._enter(ImportStage.DONE)
        self._notify(ImportProgress(stage=ImportStage.DONE, current=total, total=total))
        self._complete(result, started)
        return result

    async def _process_link(
        self,
        link: str,
        credential: BearerCredential,
        identity: Identity,
    ) -> LinkOutcome:
        try:
            album = await self._resolver.resolve(link, credential)
            release = normalize_album(album, created_by=identity.id)
            await asyncio.to_thread(self._writer.upsert, release)
        except ReleaseImportError as exc:
            return self._failed(link, stage=exc.stage, error=exc.message)
        except Exception as exc:
            logger.exception("Unexpected failure while importing %s", link)
            return self._failed(link, stage="unexpected", error=str(exc))

        log_event(logger, "reddit_import.link_imported", link=link, album=release.name)
        return LinkOutcome(link=link, imported=True, album_name=release.name)

    @staticmethod
    def _failed(link: str, *, stage: str, error: str) -> LinkOutcome:
        log_event(
            logger,
            "reddit_import.link_failed",
            link=link,
            stage=stage,
            error=error,
            level=logging.WARNING,
        )
        return LinkOutcome(link=link, imported=False, stage=stage, error=error)

    @staticmethod
    def _complete(result: BatchResult, started: int) -> None:
        log_event(
            logger,
            "reddit_import.completed",
            imported=result.imported_count,
            failed=result.failed_count,
            duration_ms=elapsed_ms(started),
        )


__all__ = [
    "BatchResult",
    "ImportProgress",
    "ImportStage",
    "LinkOutcome",
    "ProgressCallback",
    "RedditImportOrchestrator",
]
