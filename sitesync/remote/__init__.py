"""Remote object store module."""

from .client import ObjectStoreClient, parse_target
from .retry import RemoteUnavailable, retry_operation

__all__ = ["ObjectStoreClient", "parse_target", "RemoteUnavailable", "retry_operation"]
