"""
Invalidation trigger.

Turns the set of keys a sync run changed into one CloudFront
invalidation request.
"""

import logging
import uuid
from typing import Iterable, Optional
from urllib.parse import quote

from ..remote.client import normalize_prefix
from .client import CdnClient
from .models import InvalidationRequest

logger = logging.getLogger(__name__)


def invalidation_paths(
    changed_paths: Iterable[str],
    prefix: str = "",
    index_document: Optional[str] = "index.html",
) -> list[str]:
    """
    Map changed site paths to CloudFront URL paths.

    An index document is also reachable through its directory URL, so
    'docs/index.html' yields both '/docs/index.html' and '/docs/'.

    Args:
        changed_paths: Paths relative to the site root
        prefix: Bucket key prefix the site lives under
        index_document: Directory index file name, or None

    Returns:
        Sorted, de-duplicated, percent-encoded URL paths
    """
    prefix = normalize_prefix(prefix)
    urls = set()
    for path in changed_paths:
        urls.add("/" + quote(prefix + path))
        if index_document:
            directory, _, name = (prefix + path).rpartition("/")
            if name == index_document:
                urls.add("/" + quote(f"{directory}/" if directory else ""))
    return sorted(urls)


class InvalidationTrigger:
    """
    Issues at most one invalidation per sync run.

    Usage:
        trigger = InvalidationTrigger(CdnClient(), distribution_id="E123")
        request = trigger.fire({"index.html", "css/site.css"})
    """

    def __init__(
        self,
        cdn_client: CdnClient,
        distribution_id: Optional[str],
        prefix: str = "",
        wildcard_threshold: int = 500,
        index_document: Optional[str] = "index.html",
    ):
        """
        Initialize trigger.

        Args:
            cdn_client: CloudFront client
            distribution_id: Distribution in front of the bucket (None disables)
            prefix: Bucket key prefix the site lives under
            wildcard_threshold: Above this many paths a single wildcard is sent
            index_document: Directory index file name
        """
        self.cdn = cdn_client
        self.distribution_id = distribution_id
        self.prefix = normalize_prefix(prefix)
        self.wildcard_threshold = wildcard_threshold
        self.index_document = index_document

    def build_request(self, changed_paths: Iterable[str]) -> Optional[InvalidationRequest]:
        """Build the request for a set of changed paths without sending it."""
        changed = set(changed_paths)
        if not changed or not self.distribution_id:
            return None

        paths = invalidation_paths(changed, self.prefix, self.index_document)
        if len(paths) > self.wildcard_threshold:
            logger.info(
                f"{len(paths)} paths exceed the threshold of {self.wildcard_threshold}, "
                f"using a wildcard invalidation"
            )
            paths = ["/" + quote(self.prefix) + "*"]

        return InvalidationRequest(
            distribution_id=self.distribution_id,
            paths=tuple(paths),
            caller_reference=f"sitesync-{uuid.uuid4().hex}",
        )

    def fire(self, changed_paths: Iterable[str]) -> Optional[InvalidationRequest]:
        """
        Request invalidation of the changed paths.

        Returns immediately once CloudFront accepts the request.

        Args:
            changed_paths: Uploaded and deleted paths relative to the site root

        Returns:
            The accepted request, or None when nothing needed invalidating

        Raises:
            InvalidationFailure: If CloudFront does not accept the request
        """
        request = self.build_request(changed_paths)
        if request is None:
            if not self.distribution_id:
                logger.debug("No distribution configured, skipping invalidation")
            return None

        logger.info(f"Requesting invalidation of {len(request.paths)} paths")
        return self.cdn.create_invalidation(request)
