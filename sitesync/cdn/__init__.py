"""CloudFront cache invalidation module."""

from .client import CdnClient, InvalidationFailure
from .models import InvalidationRequest
from .trigger import InvalidationTrigger

__all__ = ["CdnClient", "InvalidationFailure", "InvalidationRequest", "InvalidationTrigger"]
