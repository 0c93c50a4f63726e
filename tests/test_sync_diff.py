"""
Unit tests for diff computation logic.
"""

from datetime import datetime, timezone

import pytest

from sitesync.manifest.models import MD5, S3_MULTIPART, Fingerprint, Manifest, ManifestEntry
from sitesync.sync.diff import ChangeType, DiffResult, compute_diff


def manifest(**digests) -> Manifest:
    """Build a manifest from path=digest pairs ('_' stands for '.')."""
    return Manifest.from_entries(
        ManifestEntry(
            path=name.replace("_", "."),
            fingerprint=Fingerprint(MD5, digest),
            size=len(digest),
        )
        for name, digest in digests.items()
    )


def assert_partition(local: Manifest, remote: Manifest, diff: DiffResult) -> None:
    union = local.paths | remote.paths
    assert diff.all_paths == union
    assert len(diff.to_upload) + len(diff.to_delete) + len(diff.unchanged) == len(union)


class TestDiffResult:
    """Tests for DiffResult dataclass."""

    def test_empty_diff(self):
        diff = DiffResult(unchanged=frozenset({"a.txt"}))
        assert diff.is_empty is True
        assert diff.changed == frozenset()

    def test_not_empty_with_deletes(self):
        diff = DiffResult(to_delete=frozenset({"a.txt"}))
        assert diff.is_empty is False

    def test_overlapping_sets_rejected(self):
        with pytest.raises(ValueError, match="more than one"):
            DiffResult(to_upload=frozenset({"a.txt"}), unchanged=frozenset({"a.txt"}))

    def test_change_for(self):
        diff = DiffResult(
            to_upload=frozenset({"a"}),
            to_delete=frozenset({"b"}),
            unchanged=frozenset({"c"}),
        )
        assert diff.change_for("a") == ChangeType.UPLOAD
        assert diff.change_for("b") == ChangeType.DELETE
        assert diff.change_for("c") == ChangeType.UNCHANGED
        with pytest.raises(KeyError):
            diff.change_for("d")


class TestComputeDiff:
    """Tests for compute_diff function."""

    def test_upload_delete_unchanged(self):
        """Test the canonical mixed case."""
        local = manifest(a_txt="h1", b_txt="h2")
        remote = manifest(b_txt="h2", c_txt="h3")

        diff = compute_diff(local, remote)

        assert diff.to_upload == {"a.txt"}
        assert diff.to_delete == {"c.txt"}
        assert diff.unchanged == {"b.txt"}
        assert_partition(local, remote, diff)

    def test_changed_content_uploaded(self):
        diff = compute_diff(manifest(a_txt="new"), manifest(a_txt="old"))

        assert diff.to_upload == {"a.txt"}
        assert diff.unchanged == frozenset()

    def test_identical_manifests_empty(self):
        """Test idempotence: same content on both sides yields nothing to do."""
        local = manifest(a_txt="h1", b_txt="h2")
        remote = manifest(a_txt="h1", b_txt="h2")

        diff = compute_diff(local, remote)

        assert diff.is_empty
        assert diff.unchanged == {"a.txt", "b.txt"}

    def test_timestamps_ignored(self):
        """Test that equal fingerprints win over differing timestamps."""
        fp = Fingerprint(MD5, "ab" * 16)
        local = Manifest.from_entries([ManifestEntry(
            "a.txt", fp, 3, datetime(2026, 5, 1, tzinfo=timezone.utc),
        )])
        remote = Manifest.from_entries([ManifestEntry(
            "a.txt", fp, 3, datetime(2020, 1, 1, tzinfo=timezone.utc),
        )])

        assert compute_diff(local, remote).unchanged == {"a.txt"}

    def test_multipart_remote_always_uploaded(self):
        """Test conservative policy for non-MD5 entity tags."""
        local = manifest(big_bin="ab" * 16)
        remote = Manifest.from_entries([ManifestEntry(
            "big.bin", Fingerprint(S3_MULTIPART, "ab" * 16 + "-4"), 32,
        )])

        assert compute_diff(local, remote).to_upload == {"big.bin"}

    def test_empty_local_deletes_everything(self):
        remote = manifest(a_txt="h1", b_txt="h2")

        diff = compute_diff(Manifest(), remote)

        assert diff.to_delete == {"a.txt", "b.txt"}
        assert_partition(Manifest(), remote, diff)

    def test_empty_remote_uploads_everything(self):
        local = manifest(a_txt="h1")

        assert compute_diff(local, Manifest()).to_upload == {"a.txt"}

    def test_deterministic(self):
        local = manifest(a_txt="h1", b_txt="h2", d_txt="h4")
        remote = manifest(b_txt="hX", c_txt="h3", d_txt="h4")

        assert compute_diff(local, remote) == compute_diff(local, remote)
        assert_partition(local, remote, compute_diff(local, remote))
