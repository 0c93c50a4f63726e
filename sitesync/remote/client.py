"""
S3 object store client.

Lists the objects under a bucket prefix as a Manifest and performs the
per-key uploads and deletes of a sync run. Every call goes through the
bounded retry policy in ``retry.py``.
"""

import base64
import logging
from pathlib import Path
from typing import Any, Optional

import boto3
from botocore.config import Config

from ..local.media import cache_control_for, guess_content_type
from ..manifest.models import MD5, Fingerprint, Manifest, ManifestEntry
from .retry import retry_operation

logger = logging.getLogger(__name__)


def normalize_prefix(prefix: Optional[str]) -> str:
    """Strip slashes and return 'a/b/' style prefix, or '' for the bucket root."""
    prefix = (prefix or "").strip("/")
    return f"{prefix}/" if prefix else ""


def parse_target(target: str) -> tuple[str, str]:
    """
    Split a 'bucket[/prefix]' or 's3://bucket/prefix' target.

    Returns:
        (bucket, normalized prefix)

    Raises:
        ValueError: If no bucket name is present
    """
    if target.startswith("s3://"):
        target = target[len("s3://"):]
    bucket, _, prefix = target.strip("/").partition("/")
    if not bucket:
        raise ValueError(f"No bucket name in target {target!r}")
    return bucket, normalize_prefix(prefix)


def build_boto_config(region: Optional[str], timeout: float) -> Config:
    return Config(
        region_name=region,
        signature_version="s3v4",
        connect_timeout=timeout,
        read_timeout=timeout,
        # retry_operation owns retries
        retries={"max_attempts": 1, "mode": "standard"},
    )


class ObjectStoreClient:
    """
    Client for one bucket prefix in S3 (or an S3-compatible store).

    Usage:
        store = ObjectStoreClient(bucket="www.example.com", prefix="docs/")

        remote = store.list_manifest()
        store.upload("index.html", Path("site/index.html"), entry)
        store.delete("old.html")
    """

    def __init__(
        self,
        bucket: str,
        prefix: str = "",
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        html_cache_control: str = "max-age=300",
        asset_cache_control: str = "max-age=86400",
        client: Any = None,
    ):
        """
        Initialize object store client.

        Args:
            bucket: Bucket name
            prefix: Key prefix that maps to the local root
            region: AWS region (None lets boto3 resolve it)
            endpoint_url: Custom endpoint for S3-compatible stores
            timeout: Connect/read timeout in seconds
            max_retries: Maximum attempts per call
            retry_delay: Base backoff delay in seconds
            html_cache_control: Cache-Control for HTML pages
            asset_cache_control: Cache-Control for everything else
            client: Pre-built boto3 S3 client (tests)
        """
        self.bucket = bucket
        self.prefix = normalize_prefix(prefix)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.html_cache_control = html_cache_control
        self.asset_cache_control = asset_cache_control

        if client is None:
            kwargs: dict = {"config": build_boto_config(region, timeout)}
            if endpoint_url:
                kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("s3", **kwargs)
        self._client = client

        logger.debug(f"Object store client initialized for {self}")

    def __repr__(self) -> str:
        return f"ObjectStoreClient(bucket='{self.bucket}', prefix='{self.prefix}')"

    def key_for(self, relative_path: str) -> str:
        return f"{self.prefix}{relative_path}"

    def _retry(self, operation, description: str):
        return retry_operation(
            operation,
            description,
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
        )

    def list_manifest(self) -> Manifest:
        """
        Build a Manifest from the objects under the prefix.

        The whole listing is retried as one unit, so a failure halfway
        through pagination restarts it instead of returning a partial view.

        Returns:
            Manifest keyed by path relative to the prefix

        Raises:
            RemoteUnavailable: If the bucket cannot be listed
        """
        manifest = self._retry(self._list_once, f"list s3://{self.bucket}/{self.prefix}")
        logger.info(
            f"Listed {len(manifest)} objects in s3://{self.bucket}/{self.prefix}"
        )
        return manifest

    def _list_once(self) -> Manifest:
        entries = []
        skipped = []

        paginator = self._client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self.bucket, Prefix=self.prefix):
            for obj in page.get("Contents", []):
                key = obj["Key"]
                relative = key[len(self.prefix):]
                if not relative or relative.endswith("/"):
                    skipped.append((key, "directory marker"))
                    continue
                if relative.startswith("/"):
                    logger.warning(f"Ignoring {key}: no local path maps to it")
                    skipped.append((key, "unrepresentable key"))
                    continue

                fingerprint = Fingerprint.from_etag(obj.get("ETag", ""))
                if fingerprint.algorithm != MD5:
                    logger.debug(f"{key} has a non-MD5 ETag, it will be re-uploaded")

                entries.append(ManifestEntry(
                    path=relative,
                    fingerprint=fingerprint,
                    size=obj.get("Size", 0),
                    last_modified=obj.get("LastModified"),
                ))

        return Manifest.from_entries(entries, skipped=skipped)

    def upload(self, relative_path: str, local_path: Path, entry: Optional[ManifestEntry] = None) -> str:
        """
        Upload one file as a single PUT.

        A single PUT keeps the resulting ETag equal to the content MD5,
        which is what the next run compares against. ContentMD5 makes S3
        reject a body that changed between scan and upload.

        Args:
            relative_path: Path relative to the site root
            local_path: File on disk
            entry: Local manifest entry (supplies the MD5 digest)

        Returns:
            The object key written

        Raises:
            RemoteUnavailable: If the upload fails after retries
            OSError: If the local file cannot be read
        """
        key = self.key_for(relative_path)
        content_type = guess_content_type(relative_path)
        extra: dict = {
            "ContentType": content_type,
            "CacheControl": cache_control_for(
                content_type, self.html_cache_control, self.asset_cache_control
            ),
        }
        if entry is not None and entry.fingerprint.algorithm == MD5:
            extra["ContentMD5"] = base64.b64encode(
                bytes.fromhex(entry.fingerprint.digest)
            ).decode("ascii")

        def put():
            with open(local_path, "rb") as body:
                return self._client.put_object(
                    Bucket=self.bucket, Key=key, Body=body, **extra
                )

        self._retry(put, f"upload {key}")
        logger.debug(f"Uploaded {key} ({content_type})")
        return key

    def delete(self, relative_path: str) -> str:
        """
        Delete one object.

        Returns:
            The object key removed

        Raises:
            RemoteUnavailable: If the delete fails after retries
        """
        key = self.key_for(relative_path)
        self._retry(
            lambda: self._client.delete_object(Bucket=self.bucket, Key=key),
            f"delete {key}",
        )
        logger.debug(f"Deleted {key}")
        return key
