"""Candidate link discovery on the discussion board."""

from __future__ import annotations

from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from cratedigger.config import ScraperConfig
from cratedigger.core.browser import BrowserSessionFactory
from cratedigger.errors import LinkExtractionError
from cratedigger.logging import get_logger
from cratedigger.logging_events import log_event

logger = get_logger(__name__)

ALBUM_LINK_MARKER = "open.spotify.com/album"


def extract_album_links(html: str) -> list[str]:
    """Return distinct, non-empty album hrefs from a page snapshot.

    Order follows first appearance in the document.
    """

    soup = BeautifulSoup(html or "", "html.parser")
    links: dict[str, None] = {}
    for anchor in soup.select(f'a[href*="{ALBUM_LINK_MARKER}"]'):
        href = (anchor.get("href") or "").strip()
        if href:
            links.setdefault(href, None)
    return list(links)


class LinkExtractor:
    def __init__(self, config: ScraperConfig, session_factory: BrowserSessionFactory) -> None:
        self._search_url = config.search_url
        self._ready_selector = config.ready_selector
        self._timeout_ms = config.timeout_ms
        self._session_factory = session_factory

    async def extract(self) -> list[str]:
        try:
            async with self._session_factory() as page:
                await page.goto(self._search_url)
                await page.wait_until_ready(self._ready_selector)
                html = await page.content()
        except PlaywrightTimeoutError as exc:
            raise LinkExtractionError(
                f"Timed out after {self._timeout_ms}ms waiting for search results"
            ) from exc
        except PlaywrightError as exc:
            raise LinkExtractionError(f"Browser session failed: {exc.message}") from exc

        links = extract_album_links(html)
        log_event(logger, "reddit_import.links_extracted", count=len(links))
        return links


__all__ = ["ALBUM_LINK_MARKER", "LinkExtractor", "extract_album_links"]
