"""Storage CLI command wrappers."""

import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from signed_url_audit.errors import SignedUrlNotFoundError
from signed_url_audit.models.result import ProcessResult
from signed_url_audit.process import execute

log = logging.getLogger(__name__)

LIST_TIMEOUT = 30
COPY_TIMEOUT = 60
DELETE_TIMEOUT = 30
SIGN_URL_TIMEOUT = 60
VERSION_TIMEOUT = 10

SIGNED_URL_PATTERN = re.compile(r"signed_url:\s+(https://\S+)")


def extract_signed_url(output: str) -> str:
    """Extract the signed URL from sign-url output.

    The CLI prints a ``signed_url: https://...`` line per signed object; the
    first one wins.

    Raises:
        SignedUrlNotFoundError: If no such line is present

    """
    if match := SIGNED_URL_PATTERN.search(output):
        return match.group(1)
    raise SignedUrlNotFoundError(
        "No URL extracted from sign-url output; check the signing key and "
        "the CLI output format"
    )


@dataclass(frozen=True, kw_only=True)
class StorageCli:
    """Runs object-management commands through the storage CLI."""

    cli_path: str = "gcloud"
    env: Mapping[str, str] = field(default_factory=dict)

    async def list_objects(
        self, bucket: str, object_path: str | None = None
    ) -> ProcessResult:
        """List objects in a bucket, or only those matching object_path."""
        target = object_path if object_path is not None else f"gs://{bucket}/*"
        return await self._run(["storage", "ls", target], LIST_TIMEOUT)

    async def copy_objects(self, source: str, destination: str) -> ProcessResult:
        """Copy between local paths and bucket objects."""
        return await self._run(["storage", "cp", source, destination], COPY_TIMEOUT)

    async def delete_objects(
        self, path: str, *, recursive: bool = False
    ) -> ProcessResult:
        """Delete objects matching path."""
        args = ["storage", "rm"]
        if recursive:
            args.append("--recursive")
        args.append(path)
        return await self._run(args, DELETE_TIMEOUT)

    async def sign_url(self, path: str, duration: str, key_file: str) -> ProcessResult:
        """Generate a signed URL for an object."""
        return await self._run(
            [
                "storage",
                "sign-url",
                path,
                f"--duration={duration}",
                f"--private-key-file={key_file}",
            ],
            SIGN_URL_TIMEOUT,
        )

    async def version(self) -> ProcessResult:
        """Report the CLI version."""
        return await self._run(["version"], VERSION_TIMEOUT)

    async def _run(self, args: Sequence[str], timeout: float) -> ProcessResult:
        result = await execute([self.cli_path, *args], self.env, timeout)
        if not result.succeeded:
            log.info(
                "Command %s %s exited with %d",
                self.cli_path,
                " ".join(args),
                result.exit_code,
            )
        return result
