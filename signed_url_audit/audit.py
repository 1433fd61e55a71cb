"""Signed URL audits: sign, validate the payload, render and classify."""

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from signed_url_audit.browser.fetcher import REQUEST_TIMEOUT, ContentFetcher
from signed_url_audit.browser.renderer import PageRenderer
from signed_url_audit.classifier import IndicatorReport, classify
from signed_url_audit.config import HarnessConfig
from signed_url_audit.errors import NavigationTimeoutError, ProcessTimeoutError
from signed_url_audit.models.result import AuditResult, AuditStatus, FetchOutcome
from signed_url_audit.storage import StorageCli, extract_signed_url

log = logging.getLogger(__name__)

type Expectation = Literal["benign", "suspicious"]


def verdict_holds(report: IndicatorReport, expectation: Expectation) -> bool:
    """Apply the pass/fail threshold used by the audits.

    Suspicious content must trip at least one indicator, benign content none
    at all. This is a test oracle over a fixed indicator set, not a security
    verdict.
    """
    if expectation == "suspicious":
        return report.total_indicators > 0
    return report.total_indicators == 0


def fetch_failure_status(outcome: FetchOutcome) -> AuditStatus:
    """Status for a failed fetch.

    A response that arrived but carried the wrong payload is a failure; not
    reaching the server at all is an error, or a timeout.
    """
    if outcome.status is not None:
        return "failure"
    if (outcome.error_message or "").startswith(REQUEST_TIMEOUT):
        return "timeout"
    return "error"


@dataclass(frozen=True, kw_only=True)
class AuditTarget:
    """What to audit: a bucket object to sign, or an already signed URL."""

    object_path: str | None = None
    url: str | None = None
    expectation: Expectation = "benign"
    expected_length: int | None = None

    def __post_init__(self) -> None:
        if (self.object_path is None) == (self.url is None):
            raise ValueError("Exactly one of object_path or url must be set")

    @property
    def name(self) -> str:
        """Identifier used in logs and results."""
        return self.object_path or self.url or ""


@dataclass(frozen=True, kw_only=True)
class SignedUrlAuditor:
    """Runs signed URL audits against the storage CLI and the browser."""

    storage: StorageCli
    fetcher: ContentFetcher
    renderer: PageRenderer
    config: HarnessConfig
    artifacts_dir: Path = Path("screenshots")

    async def sign(self, object_path: str) -> str:
        """Sign an object and return its URL.

        Raises:
            RuntimeError: If the sign-url command fails
            SignedUrlNotFoundError: If its output carries no URL

        """
        result = await self.storage.sign_url(
            object_path, self.config.signed_url_duration, self.config.key_file_path
        )
        if not result.succeeded:
            raise RuntimeError(f"sign-url command failed: {result.stderr.strip()}")
        url = extract_signed_url(result.stdout)
        log.info("Generated signed URL for %s", object_path)
        return url

    async def run_audits(
        self, targets: Sequence[AuditTarget]
    ) -> Sequence[AuditResult]:
        """Audit every target concurrently."""
        if not targets:
            log.info("No audit targets provided")
            return []

        log.info("Auditing %d target(s)...", len(targets))
        results = await asyncio.gather(*(self.audit(target) for target in targets))
        log.info("Audits completed")
        return results

    async def audit(self, target: AuditTarget) -> AuditResult:
        """Audit one target, converting failures into a result."""
        start = time.monotonic()
        url = target.url
        try:
            if url is None:
                url = await self.sign(target.name)
            return await self.audit_url(target, url, start)
        except (ProcessTimeoutError, NavigationTimeoutError) as e:
            log.error("Audit of %s timed out: %s", target.name, e)
            status: AuditStatus = "timeout"
            message = str(e)
        except Exception as e:
            log.error("Audit of %s failed: %s", target.name, e, exc_info=e)
            status = "error"
            message = str(e)

        return AuditResult(
            target=target.name,
            status=status,
            duration=time.monotonic() - start,
            url=url,
            message=message,
        )

    async def audit_url(
        self, target: AuditTarget, url: str, start: float
    ) -> AuditResult:
        """Validate the payload behind url, then render and classify it."""
        if target.expectation == "suspicious":
            log.info("Analyzing content of potentially malicious URL: %s", url)
        else:
            log.info("Analyzing content of non potentially malicious URL: %s", url)

        outcome = await self.fetcher.fetch_validated(url, target.expected_length)
        if not outcome.success:
            return AuditResult(
                target=target.name,
                status=fetch_failure_status(outcome),
                duration=time.monotonic() - start,
                url=url,
                message=f"Failed to fetch signed URL: {outcome.error_message}",
            )

        capture = await self.renderer.capture(
            url, "phishing-content", directory=self.artifacts_dir
        )
        report = classify(capture.page.html_content, capture.page.final_url)

        if verdict_holds(report, target.expectation):
            status: AuditStatus = "success"
            message = None
        else:
            status = "failure"
            message = (
                f"Expected {target.expectation} content, found "
                f"{report.total_indicators} indicator(s): "
                f"{', '.join(report.fired) or 'none'}"
            )

        return AuditResult(
            target=target.name,
            status=status,
            duration=time.monotonic() - start,
            url=url,
            total_indicators=report.total_indicators,
            message=message,
        )
