"""
Post-deploy site verification.

Fetches a few URLs from the deployed site and reports whether they
answer. Network errors become failed results rather than exceptions.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckResult:
    """Result of fetching one URL."""
    url: str
    status_code: Optional[int]
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 400


class SiteVerifier:
    """
    HTTP smoke check for a deployed site.

    Usage:
        verifier = SiteVerifier("https://www.example.com")
        results = verifier.check(["", "about/"])
        if not all(r.ok for r in results):
            ...
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        max_retries: int = 3,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize verifier.

        Args:
            base_url: Site URL (e.g., https://www.example.com)
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts for transient failures
            session: Pre-built session (tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        if session is None:
            session = requests.Session()

            retry_strategy = Retry(
                total=max_retries,
                backoff_factor=1,
                status_forcelist=[429, 500, 502, 503, 504],
                allowed_methods=["GET", "HEAD"],
                raise_on_status=False,
            )

            adapter = HTTPAdapter(max_retries=retry_strategy)
            session.mount("https://", adapter)
            session.mount("http://", adapter)
            session.headers.update({"User-Agent": "sitesync-verify"})

        self._session = session

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def check(self, paths: Iterable[str] = ("",)) -> list[CheckResult]:
        """
        Fetch each path and record the response status.

        Args:
            paths: Paths relative to the base URL ("" is the home page)

        Returns:
            One CheckResult per path
        """
        results = []
        for path in paths:
            url = self.url_for(path)
            try:
                response = self._session.get(url, timeout=self.timeout, allow_redirects=True)
                result = CheckResult(url=url, status_code=response.status_code)
            except requests.RequestException as e:
                result = CheckResult(url=url, status_code=None, error=str(e))

            if result.ok:
                logger.info(f"Verified {url}: {result.status_code}")
            else:
                logger.error(f"Verification failed for {url}: {result.error or result.status_code}")
            results.append(result)
        return results

    def close(self) -> None:
        self._session.close()
