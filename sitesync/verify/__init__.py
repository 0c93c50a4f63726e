"""Deployed site verification module."""

from .site import CheckResult, SiteVerifier

__all__ = ["CheckResult", "SiteVerifier"]
