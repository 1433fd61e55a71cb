"""Models for command, fetch, render and audit outcomes."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

AuditStatus = Literal["success", "failure", "timeout", "error"]


@dataclass(frozen=True, kw_only=True)
class ProcessResult:
    """Captured output of a finished child process."""

    stdout: str
    stderr: str
    exit_code: int

    @property
    def succeeded(self) -> bool:
        """Whether the process exited with status 0."""
        return self.exit_code == 0


@dataclass(frozen=True, kw_only=True)
class FetchOutcome:
    """Result of fetching a URL and validating its payload.

    A failed outcome with ``status`` set means the server answered but the
    payload did not match; a failed outcome without a status means the
    request itself did not complete.
    """

    success: bool
    error_message: str | None = None
    status: int | None = None
    headers: Mapping[str, str] = field(default_factory=dict)
    content_length: int = 0
    content_sample: bytes = b""


@dataclass(frozen=True, kw_only=True)
class RenderedPage:
    """Fully rendered page as seen after network quiescence."""

    title: str
    final_url: str
    html_content: str


@dataclass(frozen=True, kw_only=True)
class PageCapture:
    """Rendered page together with the artifacts written for it."""

    page: RenderedPage
    content_path: Path
    screenshot_path: Path


@dataclass(frozen=True, kw_only=True)
class AuditResult:
    """Outcome of auditing one signed URL."""

    target: str
    status: AuditStatus
    duration: float
    url: str | None = None
    total_indicators: int | None = None
    message: str | None = None
