"""Fixtures for end-to-end tests against a live bucket.

These tests only run when the storage CLI is on PATH and RUN_STORAGE_E2E=1,
since they create, sign and delete real objects.
"""

import os
import shutil
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio

from signed_url_audit.audit import SignedUrlAuditor
from signed_url_audit.browser import BrowserEngine, ContentFetcher, PageRenderer
from signed_url_audit.config import HarnessConfig, load_config
from signed_url_audit.storage import StorageCli
from signed_url_audit.testing.objects import TestObjects


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Mark e2e tests, share the session loop and skip unless enabled."""
    session_loop = pytest.mark.asyncio(loop_scope="session")
    enabled = os.environ.get("RUN_STORAGE_E2E") == "1"
    cli_path = os.environ.get("GCLOUD_PATH") or "gcloud"
    reason = None
    if not enabled:
        reason = "set RUN_STORAGE_E2E=1 to run tests against a live bucket"
    elif shutil.which(cli_path) is None:
        reason = f"storage CLI not found: {cli_path}"

    for item in items:
        if "e2e" not in item.path.parts:
            continue
        item.add_marker(pytest.mark.e2e)
        if pytest_asyncio.is_async_test(item):
            item.add_marker(session_loop, append=False)
        if reason is not None:
            item.add_marker(pytest.mark.skip(reason=reason))


@pytest.fixture(scope="session")
def harness_config() -> HarnessConfig:
    """Load configuration the same way the CLI does."""
    return load_config()


@pytest.fixture(scope="session")
def storage(harness_config: HarnessConfig) -> StorageCli:
    """Create storage CLI wrapper from configuration."""
    return StorageCli(
        cli_path=harness_config.gcloud_path, env=harness_config.cli_environment
    )


@pytest_asyncio.fixture(loop_scope="session")
async def objects(
    storage: StorageCli, harness_config: HarnessConfig
) -> AsyncGenerator[TestObjects, None]:
    """Provide a fresh object prefix and delete everything under it afterwards."""
    test_objects = TestObjects(
        storage=storage,
        bucket=harness_config.bucket_name,
        base_prefix=harness_config.object_prefix,
    )
    await test_objects.check_bucket()
    try:
        yield test_objects
    finally:
        await test_objects.cleanup()


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def engine() -> AsyncGenerator[BrowserEngine, None]:
    """Launch one Chromium for the whole session."""
    async with BrowserEngine.launch() as browser_engine:
        yield browser_engine


@pytest.fixture
def auditor(
    storage: StorageCli,
    engine: BrowserEngine,
    harness_config: HarnessConfig,
    tmp_path_factory: pytest.TempPathFactory,
) -> SignedUrlAuditor:
    """Create auditor writing artifacts to a temporary directory."""
    return SignedUrlAuditor(
        storage=storage,
        fetcher=ContentFetcher(engine=engine),
        renderer=PageRenderer(engine=engine),
        config=harness_config,
        artifacts_dir=tmp_path_factory.mktemp("screenshots"),
    )
