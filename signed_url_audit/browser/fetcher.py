"""HTTP fetches through a browser context's request API."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from playwright.async_api import APIResponse
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from signed_url_audit.browser.engine import BrowserEngine
from signed_url_audit.models.result import FetchOutcome

log = logging.getLogger(__name__)

MAX_REDIRECTS = 5
SAMPLE_SIZE = 1024
DEFAULT_TIMEOUT_MS = 30_000
REQUEST_TIMEOUT = "Request timeout"


def collect_headers(response: APIResponse) -> Mapping[str, str]:
    """Lower-case header names; a repeated header keeps its last value."""
    headers: dict[str, str] = {}
    for header in response.headers_array:
        headers[header["name"].lower()] = header["value"]
    return headers


def parse_content_length(headers: Mapping[str, str]) -> int:
    """Parse content-length, treating missing or malformed values as 0."""
    try:
        length = int(headers.get("content-length", "").strip())
    except ValueError:
        return 0
    return max(length, 0)


@dataclass(frozen=True, kw_only=True)
class ContentFetcher:
    """Fetches URLs without rendering them."""

    engine: BrowserEngine
    timeout_ms: float = DEFAULT_TIMEOUT_MS

    async def fetch_head(self, url: str) -> Mapping[str, str]:
        """Fetch response headers only.

        Transport failures are reported as a single ``error`` entry so header
        audits over many URLs keep going.
        """
        async with self.engine.new_context() as context:
            try:
                response = await context.request.head(
                    url, max_redirects=MAX_REDIRECTS, timeout=self.timeout_ms
                )
            except PlaywrightError as e:
                log.warning("HEAD %s failed: %s", url, e.message)
                return {"error": e.message}
            try:
                return collect_headers(response)
            finally:
                await response.dispose()

    async def fetch_validated(
        self, url: str, expected_length: int | None = None
    ) -> FetchOutcome:
        """Fetch a URL and check that it serves the expected payload.

        Args:
            url: URL to fetch, redirects are followed up to MAX_REDIRECTS
            expected_length: Size the payload must have, None or 0 to skip

        Returns:
            Outcome with the headers, parsed content length and the first
            SAMPLE_SIZE bytes of the body

        """
        async with self.engine.new_context() as context:
            try:
                response = await context.request.get(
                    url, max_redirects=MAX_REDIRECTS, timeout=self.timeout_ms
                )
            except PlaywrightTimeoutError as e:
                log.warning("GET %s timed out: %s", url, e.message)
                return FetchOutcome(
                    success=False, error_message=f"{REQUEST_TIMEOUT}: {e.message}"
                )
            except PlaywrightError as e:
                log.warning("GET %s failed: %s", url, e.message)
                return FetchOutcome(
                    success=False, error_message=f"Request error: {e.message}"
                )

            try:
                body = await response.body()
                headers = collect_headers(response)
                status = response.status
                status_text = response.status_text
                ok = response.ok
            finally:
                await response.dispose()

        content_length = parse_content_length(headers)
        log.info(
            "GET %s: status=%d content-length=%d body=%d bytes",
            url,
            status,
            content_length,
            len(body),
        )

        error_message: str | None = None
        if not ok:
            error_message = f"HTTP error: {status} {status_text}"
        elif (
            expected_length is not None
            and expected_length > 0
            and content_length != expected_length
        ):
            error_message = (
                f"Content length mismatch: expected {expected_length}, "
                f"got {content_length}"
            )

        return FetchOutcome(
            success=error_message is None,
            error_message=error_message,
            status=status,
            headers=headers,
            content_length=content_length,
            content_sample=body[:SAMPLE_SIZE],
        )
