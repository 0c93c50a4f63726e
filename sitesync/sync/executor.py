"""
Sync executor.

Applies a DiffResult to the object store with a bounded worker pool.
Per-key failures are collected rather than aborting the batch, and
nothing that succeeded is rolled back.
"""

import logging
import threading
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..cdn.models import InvalidationRequest
from ..manifest.models import Manifest
from ..remote.client import ObjectStoreClient
from .diff import DiffResult

logger = logging.getLogger(__name__)

UPLOAD = "upload"
DELETE = "delete"


@dataclass
class KeyFailure:
    """Represents a failed operation on one key."""
    key: str
    action: str
    error_type: str
    message: str


@dataclass
class SyncReport:
    """Outcome of a sync run."""
    uploaded: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failures: list[KeyFailure] = field(default_factory=list)
    cancelled: bool = False
    dry_run: bool = False
    invalidation: Optional[InvalidationRequest] = None
    invalidation_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.failures and not self.cancelled

    @property
    def failed_keys(self) -> list[str]:
        return [failure.key for failure in self.failures]

    @property
    def changed_paths(self) -> set[str]:
        """Paths whose remote state this run actually changed."""
        return set(self.uploaded) | set(self.deleted)

    def to_dict(self) -> dict:
        """Machine-readable summary for CI logs."""
        return {
            "uploaded": len(self.uploaded),
            "deleted": len(self.deleted),
            "unchanged": len(self.unchanged),
            "skipped": len(self.skipped),
            "failed": len(self.failures),
            "dry_run": self.dry_run,
            "cancelled": self.cancelled,
            "uploaded_keys": sorted(self.uploaded),
            "deleted_keys": sorted(self.deleted),
            "skipped_keys": sorted(self.skipped),
            "failures": [
                {
                    "key": f.key,
                    "action": f.action,
                    "error_type": f.error_type,
                    "message": f.message,
                }
                for f in sorted(self.failures, key=lambda f: f.key)
            ],
            "invalidation": self.invalidation.to_dict() if self.invalidation else None,
            "invalidation_error": self.invalidation_error,
        }

    def raise_for_failures(self) -> None:
        """
        Raise PartialSyncFailure if any key failed.

        Raises:
            PartialSyncFailure: Listing every failed key
        """
        if self.failures:
            raise PartialSyncFailure(self)

    def __str__(self) -> str:
        return (
            f"Sync complete: {len(self.uploaded)} uploaded, "
            f"{len(self.deleted)} deleted, {len(self.unchanged)} unchanged, "
            f"{len(self.skipped)} skipped, {len(self.failures)} failed"
        )


class PartialSyncFailure(Exception):
    """Raised when some keys could not be synced. Re-run to retry them."""

    def __init__(self, report: SyncReport):
        self.report = report
        keys = ", ".join(sorted(report.failed_keys))
        super().__init__(f"{len(report.failures)} keys failed to sync: {keys}")


class SyncExecutor:
    """
    Applies uploads and deletes from a DiffResult.

    Core principles:
    - Each key is acted on at most once per run
    - At most max_workers remote calls are in flight
    - A failed key never stops its siblings
    - cancel() stops new work; in-flight calls finish

    Usage:
        executor = SyncExecutor(store, Path("site"), max_workers=8, delete=True)
        report = executor.apply(diff, local_manifest)
    """

    def __init__(
        self,
        store: ObjectStoreClient,
        root: Path,
        max_workers: int = 8,
        dry_run: bool = False,
        delete: bool = False,
    ):
        """
        Initialize executor.

        Args:
            store: Object store to write to
            root: Local site directory the manifest paths are relative to
            max_workers: Maximum concurrent remote calls
            dry_run: If True, log planned operations without calling the store
            delete: If True, remove remote-only keys
        """
        self.store = store
        self.root = Path(root)
        self.max_workers = max_workers
        self.dry_run = dry_run
        self.delete = delete
        self._cancel = threading.Event()

    def cancel(self) -> None:
        """Stop issuing new operations."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def plan(self, diff: DiffResult) -> list[tuple[str, str]]:
        """
        Build the ordered, de-duplicated operation list.

        Returns:
            (key, action) pairs
        """
        operations = []
        seen = set()
        for key in sorted(diff.to_upload):
            if key not in seen:
                seen.add(key)
                operations.append((key, UPLOAD))
        if self.delete:
            for key in sorted(diff.to_delete):
                if key not in seen:
                    seen.add(key)
                    operations.append((key, DELETE))
        return operations

    def apply(self, diff: DiffResult, local: Manifest) -> SyncReport:
        """
        Apply a diff to the object store.

        Args:
            diff: Diff computed from the local and remote manifests
            local: Local manifest (supplies fingerprints for uploads)

        Returns:
            SyncReport listing uploaded, deleted, unchanged, skipped and failed keys
        """
        report = SyncReport(unchanged=sorted(diff.unchanged), dry_run=self.dry_run)

        if not self.delete and diff.to_delete:
            logger.info(
                f"{len(diff.to_delete)} remote-only keys left in place (delete not enabled)"
            )
            report.skipped.extend(sorted(diff.to_delete))

        operations = self.plan(diff)

        if self.dry_run:
            for key, action in operations:
                logger.info(f"DRY RUN: Would {action} {self.store.key_for(key)}")
                report.skipped.append(key)
            return report

        if not operations:
            logger.info("Nothing to upload or delete")
            return report

        logger.info(
            f"Applying {len(operations)} operations with up to {self.max_workers} workers"
        )
        queue = deque(operations)
        in_flight: dict[Future, tuple[str, str]] = {}

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            try:
                while queue or in_flight:
                    while queue and len(in_flight) < self.max_workers and not self.cancelled:
                        key, action = queue.popleft()
                        future = pool.submit(self._apply_one, key, action, local)
                        in_flight[future] = (key, action)

                    if not in_flight:
                        break

                    done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                    for future in done:
                        self._record(report, *in_flight.pop(future), future)
            except KeyboardInterrupt:
                logger.warning(
                    f"Interrupted, waiting for {len(in_flight)} in-flight operations to finish"
                )
                self.cancel()
                done, _ = wait(in_flight)
                for future in done:
                    self._record(report, *in_flight.pop(future), future)

        if queue:
            logger.warning(f"Cancelled before {len(queue)} operations started")
            report.skipped.extend(key for key, _ in queue)
        report.cancelled = self.cancelled

        logger.info(str(report))
        return report

    def _apply_one(self, key: str, action: str, local: Manifest) -> None:
        if action == UPLOAD:
            self.store.upload(key, self.root / key, local.get(key))
        else:
            self.store.delete(key)

    def _record(self, report: SyncReport, key: str, action: str, future: Future) -> None:
        error = future.exception()
        if error is None:
            if action == UPLOAD:
                report.uploaded.append(key)
            else:
                report.deleted.append(key)
            return

        logger.error(f"Failed to {action} {key}: {error}")
        report.failures.append(KeyFailure(
            key=key,
            action=action,
            error_type=type(error).__name__,
            message=str(error),
        ))
