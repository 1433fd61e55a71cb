"""Exceptions raised by the harness."""


class HarnessError(Exception):
    """Base class for harness failures."""


class ProcessSpawnError(HarnessError):
    """Raised when a command cannot be started."""


class ProcessTimeoutError(HarnessError, TimeoutError):
    """Raised when a command outlives its timeout and has been killed."""

    def __init__(self, command: str, timeout: float) -> None:
        super().__init__(
            f"Process execution timed out after {timeout} seconds: {command}"
        )
        self.command = command
        self.timeout = timeout


class SignedUrlNotFoundError(HarnessError, ValueError):
    """Raised when sign-url output carries no signed URL."""


class NavigationError(HarnessError):
    """Raised when a page cannot be loaded."""


class NavigationTimeoutError(NavigationError):
    """Raised when a page does not settle within its timeout."""


class CaptureError(HarnessError):
    """Raised when a screenshot or content dump is missing or empty."""
