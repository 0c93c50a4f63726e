"""Local site inventory module."""

from .scanner import ScanError, scan_directory
from .media import guess_content_type, cache_control_for

__all__ = ["ScanError", "scan_directory", "guess_content_type", "cache_control_for"]
