"""
CloudFront API client.

Only the two calls this tool needs: submit an invalidation and read
its status back.
"""

import logging
from typing import Any, Optional

import boto3
from botocore.config import Config

from ..remote.retry import RemoteUnavailable, retry_operation
from .models import InvalidationRequest

logger = logging.getLogger(__name__)


class InvalidationFailure(Exception):
    """Raised when CloudFront does not accept an invalidation request."""

    def __init__(self, message: str, request: Optional[InvalidationRequest] = None):
        super().__init__(message)
        self.request = request


class CdnClient:
    """
    Thin CloudFront client with bounded retries.

    Usage:
        cdn = CdnClient()
        request = cdn.create_invalidation(request)
        status = cdn.get_invalidation_status("E123", request.invalidation_id)
    """

    def __init__(
        self,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        client: Any = None,
    ):
        self.max_retries = max_retries
        self.retry_delay = retry_delay

        if client is None:
            client = boto3.client(
                "cloudfront",
                config=Config(
                    connect_timeout=timeout,
                    read_timeout=timeout,
                    retries={"max_attempts": 1, "mode": "standard"},
                ),
            )
        self._client = client

    def create_invalidation(self, request: InvalidationRequest) -> InvalidationRequest:
        """
        Submit an invalidation and record the id CloudFront assigns.

        Does not wait for propagation.

        Args:
            request: Request to submit (updated in place)

        Returns:
            The same request with invalidation_id and status filled in

        Raises:
            InvalidationFailure: If CloudFront rejects or cannot be reached
        """
        batch = {
            "Paths": {
                "Quantity": len(request.paths),
                "Items": list(request.paths),
            },
            "CallerReference": request.caller_reference,
        }

        try:
            response = retry_operation(
                lambda: self._client.create_invalidation(
                    DistributionId=request.distribution_id,
                    InvalidationBatch=batch,
                ),
                f"invalidate {len(request.paths)} paths on {request.distribution_id}",
                max_retries=self.max_retries,
                retry_delay=self.retry_delay,
            )
        except RemoteUnavailable as e:
            raise InvalidationFailure(str(e), request=request) from e

        invalidation = response.get("Invalidation", {})
        request.invalidation_id = invalidation.get("Id")
        request.status = invalidation.get("Status", "InProgress")
        logger.info(
            f"Invalidation {request.invalidation_id} accepted "
            f"({request.status}, {len(request.paths)} paths)"
        )
        return request

    def get_invalidation_status(self, distribution_id: str, invalidation_id: str) -> str:
        """
        Look up the status of an earlier invalidation.

        Returns:
            "InProgress" or "Completed"

        Raises:
            RemoteUnavailable: If the status cannot be read
        """
        response = retry_operation(
            lambda: self._client.get_invalidation(
                DistributionId=distribution_id,
                Id=invalidation_id,
            ),
            f"get invalidation {invalidation_id}",
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
        )
        return response["Invalidation"]["Status"]
