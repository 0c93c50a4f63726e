"""File tree snapshot models."""

from .models import Fingerprint, Manifest, ManifestEntry

__all__ = ["Fingerprint", "Manifest", "ManifestEntry"]
