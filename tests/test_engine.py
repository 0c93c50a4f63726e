"""
End-to-end tests for the sync engine against the in-memory fakes.
"""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from sitesync.cdn.trigger import InvalidationTrigger
from sitesync.local.scanner import ScanError
from sitesync.remote.client import ObjectStoreClient
from sitesync.remote.retry import RemoteUnavailable
from sitesync.sync.engine import SyncEngine

from .fakes import FakeCloudFrontClient, FakeS3Client, client_error


@pytest.fixture
def engine(store, trigger: InvalidationTrigger) -> SyncEngine:
    return SyncEngine(store=store, trigger=trigger, delete=True, max_workers=4)


class TestSyncEngine:
    """Tests for SyncEngine.run."""

    def test_first_run_uploads_and_invalidates(
        self, engine: SyncEngine, fake_s3: FakeS3Client, fake_cloudfront: FakeCloudFrontClient, site_dir: Path,
    ):
        report = engine.run(site_dir)

        assert sorted(report.uploaded) == ["css/site.css", "docs/index.html", "index.html"]
        assert report.ok
        assert len(fake_cloudfront.invalidations) == 1
        assert report.invalidation.paths == (
            "/", "/css/site.css", "/docs/", "/docs/index.html", "/index.html",
        )

    def test_rerun_is_a_no_op(
        self, engine: SyncEngine, fake_s3: FakeS3Client, fake_cloudfront: FakeCloudFrontClient, site_dir: Path,
    ):
        """Test idempotence: the second run changes nothing and invalidates nothing."""
        engine.run(site_dir)
        calls_after_first = len(fake_s3.calls)

        report = engine.run(site_dir)

        assert report.uploaded == []
        assert report.deleted == []
        assert len(report.unchanged) == 3
        assert len(fake_s3.calls) == calls_after_first
        assert len(fake_cloudfront.invalidations) == 1
        assert report.invalidation is None

    def test_changed_file_uploaded_on_next_run(
        self, engine: SyncEngine, fake_cloudfront: FakeCloudFrontClient, site_dir: Path,
    ):
        engine.run(site_dir)
        (site_dir / "css" / "site.css").write_text("body { color: red; }")

        report = engine.run(site_dir)

        assert report.uploaded == ["css/site.css"]
        assert fake_cloudfront.invalidations[-1]["Batch"]["Paths"]["Items"] == ["/css/site.css"]

    def test_removed_file_deleted(self, engine: SyncEngine, fake_s3: FakeS3Client, site_dir: Path):
        engine.run(site_dir)
        (site_dir / "css" / "site.css").unlink()

        report = engine.run(site_dir)

        assert report.deleted == ["css/site.css"]
        assert "css/site.css" not in fake_s3.objects

    def test_dry_run_changes_nothing(
        self, store, trigger, fake_s3: FakeS3Client, fake_cloudfront: FakeCloudFrontClient, site_dir: Path,
    ):
        engine = SyncEngine(store=store, trigger=trigger, dry_run=True)

        report = engine.run(site_dir)

        assert fake_s3.objects == {}
        assert fake_cloudfront.invalidations == []
        assert len(report.skipped) == 3

    def test_partial_failure_still_invalidates_successes(
        self, engine: SyncEngine, fake_s3: FakeS3Client, fake_cloudfront: FakeCloudFrontClient, site_dir: Path,
    ):
        fake_s3.always_fail["index.html"] = client_error("InternalError", 500)

        report = engine.run(site_dir)

        assert report.failed_keys == ["index.html"]
        items = fake_cloudfront.invalidations[0]["Batch"]["Paths"]["Items"]
        assert "/css/site.css" in items
        assert "/index.html" not in items

    def test_invalidation_failure_is_not_fatal(
        self, engine: SyncEngine, fake_cloudfront: FakeCloudFrontClient, site_dir: Path,
    ):
        fake_cloudfront.failures = [client_error("AccessDenied", 403, "CreateInvalidation")]

        report = engine.run(site_dir)

        assert report.ok
        assert report.invalidation is None
        assert "AccessDenied" in report.invalidation_error

    def test_missing_local_dir_aborts(self, engine: SyncEngine, fake_s3: FakeS3Client, tmp_path: Path):
        with pytest.raises(ScanError):
            engine.run(tmp_path / "missing")

        assert fake_s3.calls == []

    def test_missing_local_dir_reported_before_listing(self, tmp_path: Path):
        store = MagicMock(spec=ObjectStoreClient)

        with pytest.raises(ScanError, match="does not exist"):
            SyncEngine(store=store).snapshot(tmp_path / "missing")

        store.list_manifest.assert_not_called()

    def test_remote_unavailable_aborts(self, engine: SyncEngine, fake_s3: FakeS3Client, site_dir: Path):
        fake_s3.always_fail["ListObjectsV2"] = client_error("AccessDenied", 403, "ListObjectsV2")

        with pytest.raises(RemoteUnavailable):
            engine.run(site_dir)

        assert fake_s3.calls == []

    def test_without_trigger(self, store, fake_s3: FakeS3Client, site_dir: Path):
        report = SyncEngine(store=store).run(site_dir)

        assert len(report.uploaded) == 3
        assert report.invalidation is None
