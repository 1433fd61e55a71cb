"""Shared headless browser instance."""

import logging
from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from playwright.async_api import Browser, BrowserContext, async_playwright

log = logging.getLogger(__name__)

LAUNCH_ARGS: Sequence[str] = (
    "--disable-web-security",
    "--disable-features=IsolateOrigins,site-per-process",
    "--allow-running-insecure-content",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--ignore-certificate-errors",
)


@dataclass(frozen=True, kw_only=True)
class BrowserEngine:
    """Long-lived Chromium instance handing out private browsing contexts.

    Create it once per session with ``BrowserEngine.launch()``. Each call to
    ``new_context`` gets its own cookies, cache and pages, which are discarded
    when the context manager exits.
    """

    browser: Browser = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def launch(
        cls, *, headless: bool = True, args: Sequence[str] = LAUNCH_ARGS
    ) -> AsyncGenerator["BrowserEngine", None]:
        """Start Chromium and close it, and the driver, on exit."""
        async with async_playwright() as playwright:
            browser = await playwright.chromium.launch(
                headless=headless, args=list(args)
            )
            log.info("Launched Chromium %s (headless=%s)", browser.version, headless)
            try:
                yield cls(browser=browser)
            finally:
                await browser.close()
                log.info("Closed Chromium")

    @asynccontextmanager
    async def new_context(self) -> AsyncGenerator[BrowserContext, None]:
        """Borrow a fresh browsing context for the duration of one call."""
        context = await self.browser.new_context(ignore_https_errors=True)
        try:
            yield context
        finally:
            await context.close()
