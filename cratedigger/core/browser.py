"""Headless browser sessions backed by Playwright."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Callable, Protocol

from playwright.async_api import Page, async_playwright

from cratedigger.config import ScraperConfig
from cratedigger.logging import get_logger
from cratedigger.logging_events import log_event

logger = get_logger(__name__)


class PageDriver(Protocol):
    """Navigation surface the link extractor needs from a browser page."""

    async def goto(self, url: str) -> None: ...

    async def wait_until_ready(self, selector: str) -> None: ...

    async def content(self) -> str: ...


BrowserSessionFactory = Callable[[], AbstractAsyncContextManager[PageDriver]]


class BrowserSession:
    """A single page inside an isolated browser context."""

    def __init__(self, page: Page, *, timeout_ms: int) -> None:
        self._page = page
        self._timeout_ms = timeout_ms

    async def goto(self, url: str) -> None:
        await self._page.goto(url, timeout=self._timeout_ms)

    async def wait_until_ready(self, selector: str) -> None:
        await self._page.wait_for_selector(selector, timeout=self._timeout_ms)

    async def content(self) -> str:
        return await self._page.content()


@asynccontextmanager
async def open_browser_session(config: ScraperConfig) -> AsyncIterator[BrowserSession]:
    """Launch Chromium, yield one page, and tear everything down on exit."""

    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(headless=config.headless)
        try:
            context = await browser.new_context(user_agent=config.user_agent)
            try:
                page = await context.new_page()
                yield BrowserSession(page, timeout_ms=config.timeout_ms)
            finally:
                await context.close()
        finally:
            await browser.close()
            log_event(logger, "browser.session.closed")


def browser_session_factory(config: ScraperConfig) -> BrowserSessionFactory:
    def _factory() -> AbstractAsyncContextManager[PageDriver]:
        return open_browser_session(config)

    return _factory


__all__ = [
    "BrowserSession",
    "BrowserSessionFactory",
    "PageDriver",
    "browser_session_factory",
    "open_browser_session",
]
