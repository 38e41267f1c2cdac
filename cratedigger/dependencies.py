"""FastAPI dependency providers."""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from cratedigger.config import AppConfig, load_config
from cratedigger.core.browser import browser_session_factory
from cratedigger.core.spotify_client import SpotifyCatalogClient
from cratedigger.core.spotify_token import SpotifyTokenIssuer
from cratedigger.logging import get_logger
from cratedigger.orchestrator.reddit_import import ImportProgress, RedditImportOrchestrator
from cratedigger.services.access_guard import AccessGuard, SessionIdentityResolver
from cratedigger.services.album_resolver import AlbumResolver
from cratedigger.services.artist_search import ArtistSearchService
from cratedigger.services.link_extractor import LinkExtractor
from cratedigger.services.release_writer import ReleaseWriter

logger = get_logger(__name__)


@lru_cache
def get_app_config() -> AppConfig:
    return load_config()


@lru_cache
def get_spotify_catalog_client() -> SpotifyCatalogClient:
    return SpotifyCatalogClient(get_app_config().spotify)


def get_token_issuer() -> SpotifyTokenIssuer:
    return SpotifyTokenIssuer(get_app_config().spotify)


def get_access_guard() -> AccessGuard:
    return AccessGuard(
        SessionIdentityResolver(),
        admin_role=get_app_config().security.admin_role,
    )


def get_link_extractor() -> LinkExtractor:
    config = get_app_config().scraper
    return LinkExtractor(config, browser_session_factory(config))


def get_album_resolver(
    catalog: SpotifyCatalogClient = Depends(get_spotify_catalog_client),
) -> AlbumResolver:
    return AlbumResolver(catalog, genre_fallback=get_app_config().imports.genre_fallback)


def get_release_writer() -> ReleaseWriter:
    return ReleaseWriter()


def _log_progress(progress: ImportProgress) -> None:
    logger.info(
        "Import progress",
        extra={
            "event": "reddit_import.progress",
            "stage": progress.stage.value,
            "current": progress.current,
            "total": progress.total,
            "url": progress.current_url,
        },
    )


def get_reddit_import_orchestrator(
    guard: AccessGuard = Depends(get_access_guard),
    extractor: LinkExtractor = Depends(get_link_extractor),
    token_issuer: SpotifyTokenIssuer = Depends(get_token_issuer),
    resolver: AlbumResolver = Depends(get_album_resolver),
    writer: ReleaseWriter = Depends(get_release_writer),
) -> RedditImportOrchestrator:
    return RedditImportOrchestrator(
        guard=guard,
        extractor=extractor,
        token_issuer=token_issuer,
        resolver=resolver,
        writer=writer,
        on_progress=_log_progress,
    )


def get_artist_search_service(
    token_issuer: SpotifyTokenIssuer = Depends(get_token_issuer),
    catalog: SpotifyCatalogClient = Depends(get_spotify_catalog_client),
) -> ArtistSearchService:
    return ArtistSearchService(token_issuer=token_issuer, catalog=catalog)


__all__ = [
    "get_access_guard",
    "get_album_resolver",
    "get_app_config",
    "get_artist_search_service",
    "get_link_extractor",
    "get_reddit_import_orchestrator",
    "get_release_writer",
    "get_spotify_catalog_client",
    "get_token_issuer",
]
