"""
Local inventory scanner.

Walks the built site directory and produces a Manifest of relative
paths, MD5 fingerprints and sizes. MD5 is used because it is what S3
reports as the ETag of a single-part upload.
"""

import fnmatch
import hashlib
import logging
import os
import stat
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator

from ..manifest.models import MD5, Fingerprint, Manifest, ManifestEntry

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


class ScanError(IOError):
    """Raised when the local directory cannot be read."""
    pass


def hash_file(path: Path) -> str:
    """
    Compute the hex MD5 digest of a file.

    Args:
        path: File to hash

    Returns:
        Lowercase hex digest
    """
    h = hashlib.md5()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            h.update(chunk)
    return h.hexdigest()


def is_excluded(relative_path: str, patterns: Iterable[str]) -> bool:
    """Match a relative path, or any of its components, against glob patterns."""
    parts = relative_path.split("/")
    for pattern in patterns:
        if fnmatch.fnmatchcase(relative_path, pattern):
            return True
        if any(fnmatch.fnmatchcase(part, pattern) for part in parts):
            return True
    return False


class _Walker:
    """Recursive directory walk with symlink cycle detection."""

    def __init__(self, root: Path, exclude: tuple, follow_symlinks: bool):
        self.root = root
        self.exclude = exclude
        self.follow_symlinks = follow_symlinks
        self.skipped: list[tuple[str, str]] = []

    def walk(self) -> Iterator[tuple[str, Path, os.stat_result]]:
        root_stat = os.stat(self.root)
        yield from self._walk_dir(self.root, "", {(root_stat.st_dev, root_stat.st_ino)})

    def _walk_dir(
        self,
        directory: Path,
        rel_dir: str,
        ancestors: set,
    ) -> Iterator[tuple[str, Path, os.stat_result]]:
        try:
            with os.scandir(directory) as it:
                children = sorted(it, key=lambda e: e.name)
        except OSError as e:
            raise ScanError(f"Cannot read directory {directory}: {e}") from e

        for child in children:
            rel_path = f"{rel_dir}/{child.name}" if rel_dir else child.name

            if self.exclude and is_excluded(rel_path, self.exclude):
                logger.debug(f"Excluded: {rel_path}")
                self.skipped.append((rel_path, "excluded"))
                continue

            if child.is_symlink() and not self.follow_symlinks:
                self._skip(rel_path, "symlink not followed")
                continue

            try:
                st = os.stat(child.path)
            except FileNotFoundError:
                self._skip(rel_path, "broken symlink")
                continue
            except OSError as e:
                raise ScanError(f"Cannot stat {child.path}: {e}") from e

            if stat.S_ISDIR(st.st_mode):
                identity = (st.st_dev, st.st_ino)
                if identity in ancestors:
                    self._skip(rel_path, "symlink cycle")
                    continue
                yield from self._walk_dir(Path(child.path), rel_path, ancestors | {identity})
            elif stat.S_ISREG(st.st_mode):
                yield rel_path, Path(child.path), st
            else:
                self._skip(rel_path, "not a regular file")

    def _skip(self, rel_path: str, reason: str) -> None:
        logger.warning(f"Skipping {rel_path}: {reason}")
        self.skipped.append((rel_path, reason))


def check_root(root: Path) -> Path:
    """Raise ScanError unless root is an existing directory."""
    root = Path(root)
    if not root.exists():
        raise ScanError(f"Local directory does not exist: {root}")
    if not root.is_dir():
        raise ScanError(f"Not a directory: {root}")
    return root


def scan_directory(
    root: Path,
    exclude: Iterable[str] = (),
    follow_symlinks: bool = True,
) -> Manifest:
    """
    Build a Manifest of every regular file under root.

    Symlinked directories are followed unless they lead back to a
    directory already on the current walk path; such cycles, broken
    links and excluded names are recorded in ``Manifest.skipped``.

    Args:
        root: Site directory to scan
        exclude: Glob patterns matched against relative paths and their components
        follow_symlinks: Whether to follow symbolic links

    Returns:
        Manifest of the local tree

    Raises:
        ScanError: If root or any file beneath it cannot be read
    """
    root = check_root(root)
    walker = _Walker(root, tuple(exclude), follow_symlinks)
    entries = []

    try:
        for rel_path, path, st in walker.walk():
            try:
                digest = hash_file(path)
            except OSError as e:
                raise ScanError(f"Cannot read {path}: {e}") from e

            entries.append(ManifestEntry(
                path=rel_path,
                fingerprint=Fingerprint(algorithm=MD5, digest=digest),
                size=st.st_size,
                last_modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
            ))
    except ScanError:
        raise
    except OSError as e:
        raise ScanError(f"Cannot read local directory {root}: {e}") from e

    manifest = Manifest.from_entries(entries, skipped=walker.skipped)
    logger.info(
        f"Scanned {len(manifest)} files ({manifest.total_size} bytes) in {root}"
        + (f", {len(manifest.skipped)} skipped" if manifest.skipped else "")
    )
    return manifest
