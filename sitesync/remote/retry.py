"""
Bounded retry with exponential backoff for AWS calls.

botocore's own retry handler is disabled on the clients this package
builds, so this is the only retry layer.
"""

import logging
import time
from typing import Callable, Optional, TypeVar

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    NoCredentialsError,
    PartialCredentialsError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Error codes that will not go away by retrying
NON_RETRYABLE_CODES = frozenset({
    "AccessDenied",
    "AllAccessDisabled",
    "ExpiredToken",
    "InvalidAccessKeyId",
    "InvalidClientTokenId",
    "NoSuchBucket",
    "NoSuchDistribution",
    "SignatureDoesNotMatch",
    "InvalidArgument",
    "InvalidRequest",
    "BadDigest",
    "EntityTooLarge",
    "TooManyInvalidationsInProgress",
})


class RemoteUnavailable(Exception):
    """Raised when the remote service cannot be reached or refuses the request."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        retryable: bool = True,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.retryable = retryable


def translate_error(error: Exception, description: str) -> RemoteUnavailable:
    """
    Convert a boto3/botocore exception to RemoteUnavailable.

    Args:
        error: Exception raised by a client call
        description: Human-readable description of the operation

    Returns:
        RemoteUnavailable carrying status, code and retryability
    """
    if isinstance(error, RemoteUnavailable):
        return error

    if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
        return RemoteUnavailable(
            f"{description}: AWS credentials not found ({error})",
            error_code="NoCredentials",
            retryable=False,
        )

    if isinstance(error, ClientError):
        err = error.response.get("Error", {})
        code = err.get("Code", "Unknown")
        status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        retryable = code not in NON_RETRYABLE_CODES and status not in (401, 403, 404)
        return RemoteUnavailable(
            f"{description}: {code} {err.get('Message', '')}".rstrip(),
            status_code=status,
            error_code=code,
            retryable=retryable,
        )

    return RemoteUnavailable(f"{description}: {error}", retryable=True)


def retry_operation(
    operation: Callable[[], T],
    description: str,
    max_retries: int = 3,
    retry_delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Execute an operation with retry logic.

    Args:
        operation: Callable to execute
        description: Human-readable description for logging
        max_retries: Total attempts before giving up
        retry_delay: Base delay, doubled after every failed attempt
        sleep: Sleep function (replaceable in tests)

    Returns:
        Result of operation

    Raises:
        RemoteUnavailable: If the error is not retryable or all retries failed
    """
    last_error: Optional[RemoteUnavailable] = None

    for attempt in range(max_retries):
        try:
            return operation()
        except (BotoCoreError, ClientError, RemoteUnavailable) as e:
            last_error = translate_error(e, description)

            if not last_error.retryable:
                raise last_error from e

            if attempt < max_retries - 1:
                delay = retry_delay * (2 ** attempt)
                logger.warning(
                    f"Retry {attempt + 1}/{max_retries} for {description}: {last_error}. "
                    f"Waiting {delay}s..."
                )
                sleep(delay)

    logger.error(f"All retries failed for {description}: {last_error}")
    raise last_error
