"""
Configuration settings with environment variable loading.

Credentials are never read here: boto3 resolves them through the
standard AWS credential chain. The bucket and distribution identifiers
usually arrive as CI secrets, so they are kept out of debug output.
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# CloudFront rejects invalidation batches with more paths than this
MAX_INVALIDATION_PATHS = 3000


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _mask(value: Optional[str]) -> str:
    if not value:
        return "None"
    return f"'{value[:4]}***'"


@dataclass(frozen=True)
class AwsConfig:
    """AWS client configuration."""
    region: Optional[str] = None
    endpoint_url: Optional[str] = None

    def __post_init__(self):
        if self.endpoint_url and not self.endpoint_url.startswith(("https://", "http://")):
            raise ConfigurationError("SITESYNC_ENDPOINT_URL must be an http(s) URL")


@dataclass(frozen=True)
class SyncConfig:
    """Sync run configuration."""
    bucket: Optional[str] = None
    dry_run: bool = False
    delete: bool = False
    max_workers: int = 8
    max_retries: int = 3
    retry_delay_seconds: float = 1.0
    timeout_seconds: float = 30.0
    exclude: tuple = ()
    html_cache_control: str = "max-age=300"
    asset_cache_control: str = "max-age=86400"

    def __post_init__(self):
        if not 1 <= self.max_workers <= 64:
            raise ConfigurationError("SITESYNC_MAX_WORKERS must be between 1 and 64")
        if self.max_retries < 1:
            raise ConfigurationError("SITESYNC_MAX_RETRIES must be at least 1")
        if self.retry_delay_seconds < 0:
            raise ConfigurationError("SITESYNC_RETRY_DELAY must not be negative")
        if self.timeout_seconds <= 0:
            raise ConfigurationError("SITESYNC_TIMEOUT must be positive")

    def __repr__(self) -> str:
        """Never expose the bucket name in full."""
        return (
            f"SyncConfig(bucket={_mask(self.bucket)}, dry_run={self.dry_run}, "
            f"delete={self.delete}, max_workers={self.max_workers}, "
            f"max_retries={self.max_retries}, exclude={self.exclude})"
        )


@dataclass(frozen=True)
class CdnConfig:
    """CloudFront invalidation configuration."""
    distribution_id: Optional[str] = None
    wildcard_threshold: int = 500
    index_document: str = "index.html"

    def __post_init__(self):
        if self.wildcard_threshold < 1:
            raise ConfigurationError("SITESYNC_WILDCARD_THRESHOLD must be at least 1")
        if self.wildcard_threshold > MAX_INVALIDATION_PATHS:
            raise ConfigurationError(
                f"SITESYNC_WILDCARD_THRESHOLD must be at most {MAX_INVALIDATION_PATHS}"
            )

    def __repr__(self) -> str:
        return (
            f"CdnConfig(distribution_id={_mask(self.distribution_id)}, "
            f"wildcard_threshold={self.wildcard_threshold}, "
            f"index_document='{self.index_document}')"
        )


@dataclass(frozen=True)
class Settings:
    """
    Application settings container.

    All configuration is loaded from environment variables; command line
    flags override individual fields with ``dataclasses.replace``.
    """
    aws: AwsConfig = field(default_factory=AwsConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    cdn: CdnConfig = field(default_factory=CdnConfig)
    log_level: str = "INFO"

    def __repr__(self) -> str:
        return (
            f"Settings(\n"
            f"  aws={self.aws},\n"
            f"  sync={self.sync},\n"
            f"  cdn={self.cdn}\n"
            f")"
        )


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str) -> tuple:
    raw = os.getenv(name, "")
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """
    Load settings from environment variables.

    Optionally loads from a .env file first.

    Args:
        env_file: Optional path to .env file

    Returns:
        Configured Settings instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    if env_file and env_file.exists():
        _load_env_file(env_file)
    elif env_file:
        raise ConfigurationError(f"Env file not found: {env_file}")
    elif Path(".env").exists():
        _load_env_file(Path(".env"))

    try:
        aws = AwsConfig(
            region=os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION") or None,
            endpoint_url=os.getenv("SITESYNC_ENDPOINT_URL") or None,
        )

        sync = SyncConfig(
            bucket=os.getenv("SITESYNC_BUCKET") or None,
            dry_run=_env_bool("SITESYNC_DRY_RUN"),
            delete=_env_bool("SITESYNC_DELETE"),
            max_workers=int(os.getenv("SITESYNC_MAX_WORKERS", "8")),
            max_retries=int(os.getenv("SITESYNC_MAX_RETRIES", "3")),
            retry_delay_seconds=float(os.getenv("SITESYNC_RETRY_DELAY", "1.0")),
            timeout_seconds=float(os.getenv("SITESYNC_TIMEOUT", "30")),
            exclude=_env_list("SITESYNC_EXCLUDE"),
            html_cache_control=os.getenv("SITESYNC_HTML_CACHE_CONTROL", "max-age=300"),
            asset_cache_control=os.getenv("SITESYNC_ASSET_CACHE_CONTROL", "max-age=86400"),
        )

        cdn = CdnConfig(
            distribution_id=os.getenv("SITESYNC_DISTRIBUTION_ID") or None,
            wildcard_threshold=int(os.getenv("SITESYNC_WILDCARD_THRESHOLD", "500")),
            index_document=os.getenv("SITESYNC_INDEX_DOCUMENT", "index.html"),
        )

        log_level = os.getenv("LOG_LEVEL", "INFO").upper()

        settings = Settings(
            aws=aws,
            sync=sync,
            cdn=cdn,
            log_level=log_level,
        )

        logger.debug(f"Settings: {settings}")

        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(f"Failed to load configuration: {e}") from e


def _load_env_file(path: Path) -> None:
    """
    Load environment variables from a file.

    Simple .env parser that handles:
    - KEY=value
    - KEY="quoted value"
    - # comments
    - Empty lines
    """
    logger.debug(f"Loading environment from {path}")

    with open(path) as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()

            if not line or line.startswith("#"):
                continue

            if "=" not in line:
                logger.warning(f"Invalid line {line_num} in {path}: no '=' found")
                continue

            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip()

            if value.startswith('"') and value.endswith('"'):
                value = value[1:-1]
            elif value.startswith("'") and value.endswith("'"):
                value = value[1:-1]

            # Env vars take precedence
            if key not in os.environ:
                os.environ[key] = value
