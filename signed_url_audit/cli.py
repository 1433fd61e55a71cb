"""CLI entry point for signed URL audits."""

import argparse
import asyncio
import json
import logging
import sys
from collections import Counter
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from signed_url_audit.audit import AuditTarget, Expectation, SignedUrlAuditor
from signed_url_audit.browser import BrowserEngine, ContentFetcher, PageRenderer
from signed_url_audit.config import HarnessConfig, load_config
from signed_url_audit.errors import HarnessError
from signed_url_audit.models.result import AuditResult
from signed_url_audit.storage import StorageCli

STATUS_SYMBOLS = {
    "success": "✅",
    "failure": "❌",
    "error": "❗",
    "timeout": "⏱️",
}

STATUS_COUNTERS: Mapping[str, str] = {
    "success": "passed",
    "failure": "failed",
    "error": "errors",
    "timeout": "timeouts",
}


def log_results_summary(log: logging.Logger, results: Sequence[AuditResult]) -> None:
    """Log a formatted summary of audit results."""
    log.info("=" * 80)
    log.info("Audit Results Summary:")
    log.info("=" * 80)

    for result in results:
        symbol = STATUS_SYMBOLS.get(result.status, "?")
        log.info(
            "%s %s: %s (%.2fs)",
            symbol,
            result.target,
            result.status,
            result.duration,
        )
        if result.total_indicators is not None:
            log.info("  Indicators: %d", result.total_indicators)
        if result.message:
            log.info("  Message: %s", result.message)


def format_output(results: Sequence[AuditResult]) -> dict[str, Any]:
    """Format audit results for JSON output.

    Signed URLs grant access to the object, so they are left out.
    """
    all_results = [
        {
            "target": result.target,
            "status": result.status,
            "duration": result.duration,
            "indicators": result.total_indicators,
            "message": result.message,
        }
        for result in results
    ]

    counts = Counter(result.status for result in results)
    return {
        "total": len(all_results),
        **{key: counts[status] for status, key in STATUS_COUNTERS.items()},
        "results": all_results,
    }


def build_targets(
    object_paths: Sequence[str],
    urls: Sequence[str],
    expectation: Expectation,
    expected_length: int | None,
) -> Sequence[AuditTarget]:
    """Turn command line arguments into audit targets."""
    return [
        *(
            AuditTarget(
                object_path=path,
                expectation=expectation,
                expected_length=expected_length,
            )
            for path in object_paths
        ),
        *(
            AuditTarget(
                url=url, expectation=expectation, expected_length=expected_length
            )
            for url in urls
        ),
    ]


async def log_cli_version(log: logging.Logger, storage: StorageCli) -> None:
    """Log the storage CLI version; failing to get it is not fatal."""
    try:
        result = await storage.version()
    except HarnessError as e:
        log.warning("Error getting storage CLI version: %s", e)
        return

    if result.succeeded:
        log.info("Using storage CLI version: %s", result.stdout.strip())
    else:
        log.warning("Failed to get storage CLI version: %s", result.stderr.strip())


async def run(
    config: HarnessConfig,
    targets: Sequence[AuditTarget],
    artifacts_dir: Path,
) -> int:
    """Run the audits and return exit code."""
    log = logging.getLogger("signed_url_audit")

    if not targets:
        log.info("Nothing to audit")
        print(json.dumps({"total": 0, "results": []}))
        return 0

    storage = StorageCli(cli_path=config.gcloud_path, env=config.cli_environment)
    if any(target.object_path is not None for target in targets):
        await log_cli_version(log, storage)

    async with BrowserEngine.launch() as engine:
        auditor = SignedUrlAuditor(
            storage=storage,
            fetcher=ContentFetcher(engine=engine),
            renderer=PageRenderer(engine=engine),
            config=config,
            artifacts_dir=artifacts_dir,
        )
        results = await auditor.run_audits(targets)

    log_results_summary(log, results)

    output = format_output(results)
    print(json.dumps(output, indent=2))

    has_failures = any(result.status != "success" for result in results)
    return 1 if has_failures else 0


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Sign storage objects and audit the content their URLs serve"
    )
    parser.add_argument(
        "--object-path",
        action="append",
        default=[],
        help="Object to sign and audit (gs://bucket/object), repeatable",
    )
    parser.add_argument(
        "--url",
        action="append",
        default=[],
        help="Already signed URL to audit, repeatable",
    )
    parser.add_argument(
        "--expect",
        choices=["benign", "suspicious"],
        default="benign",
        help="Expected verdict for every target",
    )
    parser.add_argument(
        "--expected-length",
        type=int,
        default=None,
        help="Exact payload size every target must serve",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML configuration file",
    )
    parser.add_argument(
        "--artifacts-dir",
        type=Path,
        default=Path("screenshots"),
        help="Directory for screenshots and page content dumps",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    targets = build_targets(
        args.object_path, args.url, args.expect, args.expected_length
    )
    exit_code = asyncio.run(
        run(
            config=load_config(args.config),
            targets=targets,
            artifacts_dir=args.artifacts_dir,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
