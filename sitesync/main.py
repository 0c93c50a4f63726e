#!/usr/bin/env python3
"""
sitesync - Static Site Deployment Synchronizer

Mirrors a local build directory into an S3 bucket and invalidates the
changed paths on the CloudFront distribution in front of it.

Usage:
    sitesync sync site/ www.example.com               # Upload new/changed files
    sitesync sync site/ www.example.com/docs --delete # Mirror, removing stale keys
    sitesync sync site/ --dry-run                     # Preview (bucket from env)
    sitesync status E2EXAMPLE I3EXAMPLE               # Poll an invalidation
    sitesync policy www.example.com                   # Print public-read policy
    sitesync policy --check policy.json               # Shape-check a policy file

Environment Variables:
    SITESYNC_BUCKET           - Default target bucket[/prefix]
    SITESYNC_DISTRIBUTION_ID  - CloudFront distribution to invalidate
    AWS_REGION                - Region for the S3 client

AWS credentials are resolved by boto3 (environment, profile, or role).
"""

import argparse
import json
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

from .cdn.client import CdnClient
from .cdn.trigger import InvalidationTrigger
from .config.settings import ConfigurationError, Settings, load_settings
from .local.scanner import ScanError
from .policy.bucket_policy import PolicyError, load_policy, public_read_policy, validate_policy
from .remote.client import ObjectStoreClient, parse_target
from .remote.retry import RemoteUnavailable
from .sync.engine import SyncEngine
from .sync.executor import PartialSyncFailure, SyncReport
from .verify.site import SiteVerifier

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, level_name: str = "INFO") -> None:
    """
    Configure logging for the application.

    Args:
        verbose: If True, enable DEBUG level logging
        level_name: Level to use when not verbose
    """
    level = logging.DEBUG if verbose else getattr(logging, level_name.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
        force=True,
    )

    # Reduce noise from external libraries
    for name in ("boto3", "botocore", "s3transfer", "urllib3", "requests"):
        logging.getLogger(name).setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="sitesync",
        description="Sync a static site directory to S3 and invalidate CloudFront",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit codes:
    0    success
    1    some keys failed, or the run could not start
    2    configuration or usage error
    130  interrupted
        """,
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose/debug logging",
    )
    parser.add_argument(
        "--env",
        type=Path,
        help="Path to .env file (default: .env in current directory)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    sync = subparsers.add_parser("sync", help="Upload changes and invalidate the CDN")
    sync.add_argument("local_dir", type=Path, help="Built site directory")
    sync.add_argument(
        "target",
        nargs="?",
        help="bucket[/prefix] or s3://bucket/prefix (default: $SITESYNC_BUCKET)",
    )
    sync.add_argument(
        "--delete",
        action="store_true",
        help="Delete remote keys that have no local file",
    )
    sync.add_argument(
        "--dry-run",
        action="store_true",
        help="Preview changes without making any modifications",
    )
    sync.add_argument(
        "--distribution-id",
        help="CloudFront distribution to invalidate (default: $SITESYNC_DISTRIBUTION_ID)",
    )
    sync.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Glob pattern of local paths to skip (repeatable)",
    )
    sync.add_argument(
        "--workers",
        type=int,
        help="Maximum concurrent uploads/deletes",
    )
    sync.add_argument(
        "--summary-file",
        type=Path,
        help="Write the JSON run summary to this file",
    )
    sync.add_argument(
        "--verify-url",
        help="After syncing, check that this site URL responds",
    )

    status = subparsers.add_parser("status", help="Show the status of an invalidation")
    status.add_argument("distribution_id")
    status.add_argument("invalidation_id")

    policy = subparsers.add_parser("policy", help="Print or check a public-read bucket policy")
    policy.add_argument("bucket", nargs="?", help="Bucket to generate a policy for")
    policy.add_argument("--prefix", default="", help="Restrict the grant to a key prefix")
    policy.add_argument("--check", type=Path, metavar="FILE", help="Shape-check a policy file")

    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    return build_parser().parse_args(argv)


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Fold command line flags over environment settings."""
    sync = settings.sync
    sync = replace(
        sync,
        bucket=args.target or sync.bucket,
        dry_run=args.dry_run or sync.dry_run,
        delete=args.delete or sync.delete,
        max_workers=args.workers if args.workers is not None else sync.max_workers,
        exclude=tuple(sync.exclude) + tuple(args.exclude),
    )
    cdn = replace(
        settings.cdn,
        distribution_id=args.distribution_id or settings.cdn.distribution_id,
    )
    return replace(settings, sync=sync, cdn=cdn)


def build_engine(settings: Settings) -> SyncEngine:
    """
    Wire the store, trigger and engine for a run.

    Raises:
        ConfigurationError: If no target bucket is configured
    """
    if not settings.sync.bucket:
        raise ConfigurationError("No target bucket: pass one or set SITESYNC_BUCKET")

    try:
        bucket, prefix = parse_target(settings.sync.bucket)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    store = ObjectStoreClient(
        bucket=bucket,
        prefix=prefix,
        region=settings.aws.region,
        endpoint_url=settings.aws.endpoint_url,
        timeout=settings.sync.timeout_seconds,
        max_retries=settings.sync.max_retries,
        retry_delay=settings.sync.retry_delay_seconds,
        html_cache_control=settings.sync.html_cache_control,
        asset_cache_control=settings.sync.asset_cache_control,
    )

    trigger = None
    if settings.cdn.distribution_id:
        trigger = InvalidationTrigger(
            cdn_client=CdnClient(
                timeout=settings.sync.timeout_seconds,
                max_retries=settings.sync.max_retries,
                retry_delay=settings.sync.retry_delay_seconds,
            ),
            distribution_id=settings.cdn.distribution_id,
            prefix=prefix,
            wildcard_threshold=settings.cdn.wildcard_threshold,
            index_document=settings.cdn.index_document,
        )

    return SyncEngine(
        store=store,
        trigger=trigger,
        dry_run=settings.sync.dry_run,
        delete=settings.sync.delete,
        max_workers=settings.sync.max_workers,
        exclude=settings.sync.exclude,
    )


def report_summary(report: SyncReport, summary_file: Optional[Path] = None) -> None:
    """
    Log the final report and emit the machine-readable summary.

    Args:
        report: Result of the run
        summary_file: Optional path for the JSON summary
    """
    logger.info("=" * 50)
    logger.info("Sync Summary")
    logger.info("=" * 50)
    logger.info(f"Uploaded:              {len(report.uploaded)}")
    logger.info(f"Deleted:               {len(report.deleted)}")
    logger.info(f"Unchanged:             {len(report.unchanged)}")
    logger.info(f"Skipped:               {len(report.skipped)}")
    logger.info(f"Failed:                {len(report.failures)}")
    if report.invalidation:
        logger.info(f"Invalidation:          {report.invalidation.invalidation_id}")
    elif report.invalidation_error:
        logger.info(f"Invalidation:          failed ({report.invalidation_error})")
    logger.info("=" * 50)

    summary = report.to_dict()
    logger.info(f"Summary: {json.dumps(summary, sort_keys=True)}")

    if summary_file:
        summary_file.parent.mkdir(parents=True, exist_ok=True)
        summary_file.write_text(json.dumps(summary, indent=2, sort_keys=True) + "\n")
        logger.info(f"Summary written to {summary_file}")

    github_output = os.getenv("GITHUB_OUTPUT")
    if github_output:
        with open(github_output, "a") as f:
            f.write(f"uploaded={summary['uploaded']}\n")
            f.write(f"deleted={summary['deleted']}\n")
            f.write(f"failed={summary['failed']}\n")
            if report.invalidation:
                f.write(f"invalidation_id={report.invalidation.invalidation_id}\n")


def run_sync(args: argparse.Namespace, settings: Settings) -> int:
    """
    Execute the sync subcommand.

    Returns:
        Exit code
    """
    try:
        settings = apply_overrides(settings, args)
        engine = build_engine(settings)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG

    try:
        report = engine.run(args.local_dir)
    except ScanError as e:
        logger.error(f"Cannot read local directory: {e}")
        return EXIT_FAILURE
    except RemoteUnavailable as e:
        logger.error(f"Remote store unavailable: {e}")
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.info("Sync interrupted by user")
        return EXIT_INTERRUPTED

    report_summary(report, args.summary_file)

    if report.cancelled:
        logger.info("Sync interrupted by user")
        return EXIT_INTERRUPTED

    try:
        report.raise_for_failures()
    except PartialSyncFailure as e:
        logger.error(str(e))
        logger.error("Re-run the sync to retry the failed keys")
        return EXIT_FAILURE

    if args.verify_url and not settings.sync.dry_run:
        verifier = SiteVerifier(args.verify_url, timeout=settings.sync.timeout_seconds)
        try:
            results = verifier.check()
        finally:
            verifier.close()
        if not all(result.ok for result in results):
            return EXIT_FAILURE

    logger.info("Sync completed successfully!")
    return EXIT_OK


def run_status(args: argparse.Namespace, settings: Settings) -> int:
    """Print the status of an invalidation."""
    cdn = CdnClient(
        timeout=settings.sync.timeout_seconds,
        max_retries=settings.sync.max_retries,
        retry_delay=settings.sync.retry_delay_seconds,
    )
    try:
        status = cdn.get_invalidation_status(args.distribution_id, args.invalidation_id)
    except RemoteUnavailable as e:
        logger.error(f"Cannot read invalidation status: {e}")
        return EXIT_FAILURE

    logger.info(f"Invalidation {args.invalidation_id}: {status}")
    print(status)
    return EXIT_OK


def run_policy(args: argparse.Namespace) -> int:
    """Print a public-read policy, or check the shape of a policy file."""
    if args.check:
        try:
            document = load_policy(args.check)
        except PolicyError as e:
            logger.error(str(e))
            return EXIT_FAILURE

        problems = validate_policy(document)
        for problem in problems:
            logger.error(f"{args.check}: {problem}")
        if problems:
            return EXIT_FAILURE
        logger.info(f"{args.check}: policy shape is valid")
        return EXIT_OK

    if not args.bucket:
        logger.error("A bucket name or --check FILE is required")
        return EXIT_CONFIG

    print(json.dumps(public_read_policy(args.bucket, args.prefix), indent=2))
    return EXIT_OK


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code
    """
    args = parse_args(argv)
    setup_logging(verbose=args.verbose)

    if args.command == "policy":
        return run_policy(args)

    try:
        settings = load_settings(env_file=args.env)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        logger.error("Please check your .env file or environment variables")
        return EXIT_CONFIG

    if not args.verbose and settings.log_level != "INFO":
        setup_logging(level_name=settings.log_level)

    if args.command == "status":
        return run_status(args, settings)

    return run_sync(args, settings)


if __name__ == "__main__":
    sys.exit(main())
