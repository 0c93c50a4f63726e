"""Bucket policy helpers."""

from .bucket_policy import PolicyError, load_policy, public_read_policy, validate_policy

__all__ = ["PolicyError", "load_policy", "public_read_policy", "validate_policy"]
