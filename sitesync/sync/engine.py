"""
Diff-based sync engine.

Orchestrates one deployment run: scan and list, diff, apply, then
invalidate what changed. Re-running against an unchanged tree is a
no-op.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, Optional

from ..cdn.client import InvalidationFailure
from ..cdn.trigger import InvalidationTrigger
from ..local.scanner import check_root, scan_directory
from ..manifest.models import Manifest
from ..remote.client import ObjectStoreClient
from .diff import DiffResult, compute_diff
from .executor import SyncExecutor, SyncReport

logger = logging.getLogger(__name__)


class SyncEngine:
    """
    Orchestrates synchronization from a local directory to a bucket prefix.

    Core principles:
    - No local state: the bucket listing is the only record consulted
    - Identical inputs always produce the identical diff
    - Per-key failures are reported, whole-run failures abort
    - A failed invalidation never fails the sync

    Usage:
        engine = SyncEngine(
            store=ObjectStoreClient(bucket="www.example.com"),
            trigger=InvalidationTrigger(CdnClient(), "E123"),
            delete=True,
        )

        report = engine.run(Path("site"))
        print(report)
    """

    def __init__(
        self,
        store: ObjectStoreClient,
        trigger: Optional[InvalidationTrigger] = None,
        dry_run: bool = False,
        delete: bool = False,
        max_workers: int = 8,
        exclude: Iterable[str] = (),
        follow_symlinks: bool = True,
    ):
        """
        Initialize sync engine.

        Args:
            store: Object store for the target bucket prefix
            trigger: Invalidation trigger (None disables invalidation)
            dry_run: If True, don't make any changes
            delete: If True, delete remote keys with no local file
            max_workers: Concurrent upload/delete limit
            exclude: Glob patterns of local paths to leave out
            follow_symlinks: Whether the scanner follows symbolic links
        """
        self.store = store
        self.trigger = trigger
        self.dry_run = dry_run
        self.delete = delete
        self.max_workers = max_workers
        self.exclude = tuple(exclude)
        self.follow_symlinks = follow_symlinks
        self.executor: Optional[SyncExecutor] = None

    def snapshot(self, root: Path) -> tuple[Manifest, Manifest]:
        """
        Scan the local tree and list the bucket concurrently.

        Returns:
            (local manifest, remote manifest)

        Raises:
            ScanError: If the local directory cannot be read
            RemoteUnavailable: If the bucket cannot be listed
        """
        root = check_root(root)

        pool = ThreadPoolExecutor(max_workers=2)
        try:
            local_future = pool.submit(
                scan_directory, root, self.exclude, self.follow_symlinks
            )
            remote_future = pool.submit(self.store.list_manifest)

            local = local_future.result()
            remote = remote_future.result()
        except BaseException:
            # Return without waiting on the other task
            pool.shutdown(wait=False, cancel_futures=True)
            raise

        pool.shutdown()
        return local, remote

    def plan(self, root: Path) -> tuple[Manifest, DiffResult]:
        local, remote = self.snapshot(root)
        diff = compute_diff(local, remote)
        logger.info(
            f"Diff: {len(diff.to_upload)} to upload, {len(diff.to_delete)} to delete, "
            f"{len(diff.unchanged)} unchanged"
        )
        return local, diff

    def run(self, root: Path) -> SyncReport:
        """
        Execute full synchronization.

        Steps:
        1. Scan local files and list remote objects (concurrently)
        2. Compute the diff
        3. Upload and delete
        4. Invalidate the changed paths on the CDN

        Args:
            root: Local site directory

        Returns:
            SyncReport for the run
        """
        root = Path(root)
        if self.dry_run:
            logger.info("DRY RUN MODE - No changes will be made")

        logger.info(f"Syncing {root} to s3://{self.store.bucket}/{self.store.prefix}")
        local, diff = self.plan(root)

        self.executor = SyncExecutor(
            store=self.store,
            root=root,
            max_workers=self.max_workers,
            dry_run=self.dry_run,
            delete=self.delete,
        )
        report = self.executor.apply(diff, local)

        if not self.dry_run:
            self._invalidate(report)

        if report.failures:
            logger.warning(f"Sync completed with {len(report.failures)} errors")
            for failure in report.failures:
                logger.warning(f"  - {failure.key}: {failure.message}")

        return report

    def _invalidate(self, report: SyncReport) -> None:
        """
        Fire the invalidation for whatever this run changed.

        Runs even after a partial failure: the keys that did succeed
        are already live in the bucket.
        """
        if self.trigger is None:
            return

        changed = report.changed_paths
        if not changed:
            logger.info("No remote changes, skipping invalidation")
            return

        try:
            report.invalidation = self.trigger.fire(changed)
        except InvalidationFailure as e:
            logger.error(f"Invalidation failed (objects are already up to date): {e}")
            report.invalidation_error = str(e)
