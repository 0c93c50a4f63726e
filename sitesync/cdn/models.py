"""
CloudFront invalidation models.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


@dataclass
class InvalidationRequest:
    """
    A cache invalidation issued for one sync run.

    The request's lifecycle here ends when CloudFront accepts it
    (status "InProgress"). Completion happens asynchronously and is
    polled separately by invalidation id.

    Attributes:
        distribution_id: CloudFront distribution
        paths: URL path patterns sent to CloudFront
        caller_reference: Unique reference for idempotent submission
        issued_at: When the request was created
        status: Status reported by CloudFront ("Pending" before submission)
        invalidation_id: Id assigned by CloudFront once accepted
    """
    distribution_id: str
    paths: tuple
    caller_reference: str
    issued_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: str = "Pending"
    invalidation_id: Optional[str] = None

    @property
    def is_wildcard(self) -> bool:
        return any(path.endswith("*") for path in self.paths)

    @property
    def accepted(self) -> bool:
        return self.invalidation_id is not None

    def to_dict(self) -> dict:
        return {
            "distribution_id": self.distribution_id,
            "invalidation_id": self.invalidation_id,
            "status": self.status,
            "paths": list(self.paths),
            "issued_at": self.issued_at.isoformat(),
        }
