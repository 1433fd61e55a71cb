"""Full page rendering, screenshots and content dumps."""

import logging
import time
from collections.abc import AsyncGenerator, Iterator
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass
from pathlib import Path

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from signed_url_audit.browser.engine import BrowserEngine
from signed_url_audit.errors import (
    CaptureError,
    NavigationError,
    NavigationTimeoutError,
)
from signed_url_audit.models.result import PageCapture, RenderedPage

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 30_000
SCREENSHOT_DIR = Path("screenshots")


def artifact_name(directory: Path, prefix: str) -> str:
    """Unique, human readable artifact name for one capture.

    Captures landing in the same millisecond get a counter appended.
    """
    base = f"{prefix}-{time.time_ns() // 1_000_000}"
    name = base
    counter = 1
    while (directory / f"{name}.html").exists():
        name = f"{base}-{counter}"
        counter += 1
    return name


@contextmanager
def navigation_errors(action: str) -> Iterator[None]:
    """Translate Playwright failures into the typed navigation errors."""
    try:
        yield
    except PlaywrightTimeoutError as e:
        raise NavigationTimeoutError(f"{action} timeout: {e.message}") from e
    except PlaywrightError as e:
        raise NavigationError(f"{action} failed: {e.message}") from e


def ensure_written(path: Path) -> Path:
    """Check that an artifact exists and is not empty."""
    if not path.is_file():
        raise CaptureError(f"Capture file was not created: {path}")
    if path.stat().st_size == 0:
        raise CaptureError(f"Capture file is empty: {path}")
    return path


@dataclass(frozen=True, kw_only=True)
class PageRenderer:
    """Loads URLs in a real page and extracts what the user would see."""

    engine: BrowserEngine

    @asynccontextmanager
    async def open(
        self, url: str, timeout_ms: float = DEFAULT_TIMEOUT_MS
    ) -> AsyncGenerator[Page, None]:
        """Navigate a private page to url and wait for network idle.

        Raises:
            NavigationTimeoutError: If the page did not settle in time
            NavigationError: If navigation failed for any other reason

        """
        async with self.engine.new_context() as context:
            page = await context.new_page()
            try:
                log.info("Navigating to %s", url)
                with navigation_errors("Navigation"):
                    await page.goto(url, timeout=timeout_ms, wait_until="networkidle")
                yield page
            finally:
                await page.close()

    async def render(
        self, url: str, timeout_ms: float = DEFAULT_TIMEOUT_MS
    ) -> RenderedPage:
        """Render url and return its title, final URL and DOM."""
        async with self.open(url, timeout_ms) as page:
            return await snapshot(page)

    async def screenshot(
        self,
        url: str,
        output_name: str,
        directory: Path = SCREENSHOT_DIR,
        timeout_ms: float = DEFAULT_TIMEOUT_MS,
    ) -> Path:
        """Render url and save a PNG screenshot named after output_name.

        Raises:
            CaptureError: If the screenshot was not written or is empty

        """
        async with self.open(url, timeout_ms) as page:
            return await save_screenshot(page, directory / f"{output_name}.png")

    async def capture(
        self,
        url: str,
        output_name: str,
        directory: Path = SCREENSHOT_DIR,
        timeout_ms: float = DEFAULT_TIMEOUT_MS,
    ) -> PageCapture:
        """Render url once, dumping its HTML and a screenshot for review."""
        async with self.open(url, timeout_ms) as page:
            rendered = await snapshot(page)
            directory.mkdir(parents=True, exist_ok=True)
            name = artifact_name(directory, output_name)
            content_path = directory / f"{name}.html"
            content_path.write_text(rendered.html_content)
            ensure_written(content_path)
            log.info("Saved page content to: %s", content_path)
            screenshot_path = await save_screenshot(page, directory / f"{name}.png")

        return PageCapture(
            page=rendered,
            content_path=content_path,
            screenshot_path=screenshot_path,
        )


async def snapshot(page: Page) -> RenderedPage:
    """Read the rendered state of a loaded page.

    Raises:
        NavigationError: If the page navigated away while being read

    """
    with navigation_errors("Page capture"):
        rendered = RenderedPage(
            title=await page.title(),
            final_url=page.url,
            html_content=await page.content(),
        )
    log.info("Current page URL: %s", rendered.final_url)
    log.info("Page title: %s", rendered.title)
    return rendered


async def save_screenshot(page: Page, path: Path) -> Path:
    """Write a screenshot of page to path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        await page.screenshot(path=path)
    except PlaywrightError as e:
        raise CaptureError(f"Screenshot failed: {e.message}") from e
    ensure_written(path)
    log.info("Screenshot saved to: %s", path)
    return path
