"""
Diff detection for sync engine.

Compares the local manifest against the remote manifest to determine
which keys must be uploaded, which deleted and which left alone.
"""

from dataclasses import dataclass, field
from enum import Enum

from ..manifest.models import Manifest


class ChangeType(Enum):
    """Per-path outcome of comparing the two manifests."""

    # Missing remotely or content differs - upload
    UPLOAD = "upload"

    # Present only remotely - delete
    DELETE = "delete"

    # Same fingerprint on both sides
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class DiffResult:
    """
    Result of comparing a local and a remote manifest.

    The three sets partition the union of both manifests' paths.

    Attributes:
        to_upload: Paths absent remotely or with a differing fingerprint
        to_delete: Paths present remotely but not locally
        unchanged: Paths with matching fingerprints
    """
    to_upload: frozenset = field(default_factory=frozenset)
    to_delete: frozenset = field(default_factory=frozenset)
    unchanged: frozenset = field(default_factory=frozenset)

    def __post_init__(self):
        overlap = (
            (self.to_upload & self.to_delete)
            | (self.to_upload & self.unchanged)
            | (self.to_delete & self.unchanged)
        )
        if overlap:
            raise ValueError(f"Paths in more than one diff set: {sorted(overlap)}")

    @property
    def is_empty(self) -> bool:
        """Check if nothing needs to be uploaded or deleted."""
        return not self.to_upload and not self.to_delete

    @property
    def changed(self) -> frozenset:
        return self.to_upload | self.to_delete

    @property
    def all_paths(self) -> frozenset:
        return self.to_upload | self.to_delete | self.unchanged

    def change_for(self, path: str) -> ChangeType:
        """
        Look up the change type of a path.

        Raises:
            KeyError: If the path is in neither manifest
        """
        if path in self.to_upload:
            return ChangeType.UPLOAD
        if path in self.to_delete:
            return ChangeType.DELETE
        if path in self.unchanged:
            return ChangeType.UNCHANGED
        raise KeyError(path)

    def __repr__(self) -> str:
        return (
            f"DiffResult(upload={len(self.to_upload)}, "
            f"delete={len(self.to_delete)}, unchanged={len(self.unchanged)})"
        )


def compute_diff(local: Manifest, remote: Manifest) -> DiffResult:
    """
    Compute the diff between the local and remote manifests.

    Rules:
    - Local only → upload
    - Remote only → delete
    - Both, fingerprints match → unchanged (timestamps and sizes ignored)
    - Both, fingerprints differ or use different algorithms → upload

    Args:
        local: Manifest of the site directory
        remote: Manifest of the bucket prefix

    Returns:
        DiffResult partitioning every path
    """
    local_paths = local.paths
    remote_paths = remote.paths

    to_upload = set(local_paths - remote_paths)
    to_delete = remote_paths - local_paths
    unchanged = set()

    for path in local_paths & remote_paths:
        if local[path].fingerprint.matches(remote[path].fingerprint):
            unchanged.add(path)
        else:
            to_upload.add(path)

    return DiffResult(
        to_upload=frozenset(to_upload),
        to_delete=frozenset(to_delete),
        unchanged=frozenset(unchanged),
    )
