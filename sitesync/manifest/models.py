"""
Manifest data models.

A manifest is an immutable snapshot of a file tree, either the local
site directory or the objects under a bucket prefix, keyed by relative
path. Both sides are fingerprinted so they can be compared cheaply.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Optional

MD5 = "md5"
S3_MULTIPART = "s3-multipart"
OPAQUE = "opaque"

_MD5_HEX = re.compile(r"^[0-9a-f]{32}$")


@dataclass(frozen=True)
class Fingerprint:
    """
    Content fingerprint.

    Attributes:
        algorithm: How the digest was produced ("md5", "s3-multipart", "opaque")
        digest: Hex digest or provider tag
    """
    algorithm: str
    digest: str

    def matches(self, other: "Fingerprint") -> bool:
        """
        Check whether two fingerprints identify the same content.

        Only MD5 digests are comparable; any other algorithm, or a mix of
        algorithms, is treated as differing.
        """
        return (
            self.algorithm == MD5
            and other.algorithm == MD5
            and self.digest == other.digest
        )

    @classmethod
    def from_etag(cls, etag: str) -> "Fingerprint":
        """Create Fingerprint from an S3 entity tag."""
        tag = etag.strip().strip('"').lower()
        if "-" in tag:
            return cls(algorithm=S3_MULTIPART, digest=tag)
        if _MD5_HEX.match(tag):
            return cls(algorithm=MD5, digest=tag)
        return cls(algorithm=OPAQUE, digest=tag)

    def __str__(self) -> str:
        return f"{self.algorithm}:{self.digest}"


@dataclass(frozen=True)
class ManifestEntry:
    """
    A single file in a manifest.

    Attributes:
        path: Relative, '/'-separated path (unique within a manifest)
        fingerprint: Content fingerprint
        size: Size in bytes
        last_modified: Modification timestamp, informational only
    """
    path: str
    fingerprint: Fingerprint
    size: int
    last_modified: Optional[datetime] = None

    def __post_init__(self):
        if not self.path or self.path.startswith("/"):
            raise ValueError(f"Manifest path must be relative and non-empty, got {self.path!r}")
        if self.size < 0:
            raise ValueError(f"Size must not be negative, got {self.size}")


@dataclass(frozen=True)
class Manifest:
    """
    Read-only mapping of relative path to ManifestEntry.

    Build instances with ``Manifest.from_entries``, which enforces path
    uniqueness.
    """
    entries: Mapping[str, ManifestEntry] = field(default_factory=lambda: MappingProxyType({}))
    skipped: tuple = ()

    @classmethod
    def from_entries(
        cls,
        entries: Iterable[ManifestEntry],
        skipped: Iterable[tuple[str, str]] = (),
    ) -> "Manifest":
        """
        Create a Manifest from entries.

        Args:
            entries: Manifest entries
            skipped: (path, reason) pairs that were left out

        Raises:
            ValueError: If two entries share a path
        """
        by_path: dict[str, ManifestEntry] = {}
        for entry in entries:
            if entry.path in by_path:
                raise ValueError(f"Duplicate manifest path: {entry.path}")
            by_path[entry.path] = entry
        return cls(entries=MappingProxyType(by_path), skipped=tuple(skipped))

    @property
    def paths(self) -> frozenset:
        return frozenset(self.entries)

    def get(self, path: str) -> Optional[ManifestEntry]:
        return self.entries.get(path)

    def __getitem__(self, path: str) -> ManifestEntry:
        return self.entries[path]

    def __contains__(self, path: object) -> bool:
        return path in self.entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def total_size(self) -> int:
        return sum(entry.size for entry in self.entries.values())

    def __repr__(self) -> str:
        return f"Manifest(entries={len(self.entries)}, skipped={len(self.skipped)})"
