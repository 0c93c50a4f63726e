"""Environment-driven configuration module."""

from .settings import Settings, ConfigurationError, load_settings

__all__ = ["Settings", "ConfigurationError", "load_settings"]
