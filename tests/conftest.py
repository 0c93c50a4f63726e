"""
Pytest configuration and shared fixtures.

Provides temporary site trees and clients wired to the in-memory
AWS fakes in ``fakes.py``.
"""

import os
from pathlib import Path

import pytest

from sitesync.cdn.client import CdnClient
from sitesync.cdn.trigger import InvalidationTrigger
from sitesync.remote.client import ObjectStoreClient

from .fakes import FakeCloudFrontClient, FakeS3Client


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's environment out of the tests."""
    for name in list(os.environ):
        if name.startswith("SITESYNC_") or name in ("GITHUB_OUTPUT", "LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def site_dir(tmp_path: Path) -> Path:
    """Create a small built site."""
    root = tmp_path / "site"
    (root / "css").mkdir(parents=True)
    (root / "docs").mkdir()
    (root / "index.html").write_text("<h1>Home</h1>")
    (root / "css" / "site.css").write_text("body { margin: 0; }")
    (root / "docs" / "index.html").write_text("<h1>Docs</h1>")
    return root


@pytest.fixture
def fake_s3() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def fake_cloudfront() -> FakeCloudFrontClient:
    return FakeCloudFrontClient()


@pytest.fixture
def store(fake_s3: FakeS3Client) -> ObjectStoreClient:
    """Object store client backed by the fake, with instant retries."""
    return ObjectStoreClient(
        bucket="www.example.com",
        prefix="",
        max_retries=3,
        retry_delay=0,
        client=fake_s3,
    )


@pytest.fixture
def cdn_client(fake_cloudfront: FakeCloudFrontClient) -> CdnClient:
    return CdnClient(max_retries=2, retry_delay=0, client=fake_cloudfront)


@pytest.fixture
def trigger(cdn_client: CdnClient) -> InvalidationTrigger:
    return InvalidationTrigger(cdn_client, distribution_id="E2EXAMPLE")
