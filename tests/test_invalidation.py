"""
Unit tests for CloudFront invalidation.
"""

import pytest

from sitesync.cdn.client import CdnClient, InvalidationFailure
from sitesync.cdn.trigger import InvalidationTrigger, invalidation_paths

from .fakes import FakeCloudFrontClient, client_error


class TestInvalidationPaths:
    def test_plain_paths(self):
        assert invalidation_paths({"css/site.css"}) == ["/css/site.css"]

    def test_index_document_adds_directory(self):
        assert invalidation_paths({"docs/index.html"}) == ["/docs/", "/docs/index.html"]

    def test_root_index(self):
        assert invalidation_paths({"index.html"}) == ["/", "/index.html"]

    def test_prefix(self):
        assert invalidation_paths({"index.html"}, prefix="blog") == ["/blog/", "/blog/index.html"]

    def test_percent_encoding(self):
        assert invalidation_paths({"my file.html"}) == ["/my%20file.html"]


class TestInvalidationTrigger:
    """Tests for InvalidationTrigger.fire."""

    def test_no_request_for_empty_set(self, trigger: InvalidationTrigger, fake_cloudfront: FakeCloudFrontClient):
        assert trigger.fire(set()) is None
        assert fake_cloudfront.invalidations == []

    def test_no_request_without_distribution(self, cdn_client: CdnClient, fake_cloudfront: FakeCloudFrontClient):
        trigger = InvalidationTrigger(cdn_client, distribution_id=None)

        assert trigger.fire({"index.html"}) is None
        assert fake_cloudfront.invalidations == []

    def test_single_request_with_exact_paths(self, trigger: InvalidationTrigger, fake_cloudfront: FakeCloudFrontClient):
        request = trigger.fire({"css/site.css", "about.html"})

        assert len(fake_cloudfront.invalidations) == 1
        sent = fake_cloudfront.invalidations[0]
        assert sent["DistributionId"] == "E2EXAMPLE"
        assert sent["Batch"]["Paths"] == {
            "Quantity": 2,
            "Items": ["/about.html", "/css/site.css"],
        }
        assert request.invalidation_id == "I0001"
        assert request.status == "InProgress"
        assert request.accepted
        assert not request.is_wildcard

    def test_wildcard_above_threshold(self, cdn_client: CdnClient, fake_cloudfront: FakeCloudFrontClient):
        trigger = InvalidationTrigger(
            cdn_client, distribution_id="E2EXAMPLE", prefix="docs/", wildcard_threshold=2,
        )

        request = trigger.fire({"a.html", "b.html", "c.html"})

        assert request.paths == ("/docs/*",)
        assert request.is_wildcard

    def test_at_threshold_stays_exact(self, cdn_client: CdnClient):
        trigger = InvalidationTrigger(cdn_client, distribution_id="E2EXAMPLE", wildcard_threshold=2)

        assert trigger.build_request({"a.html", "b.html"}).paths == ("/a.html", "/b.html")

    def test_unique_caller_reference(self, trigger: InvalidationTrigger):
        first = trigger.build_request({"a.html"})
        second = trigger.build_request({"a.html"})

        assert first.caller_reference != second.caller_reference

    def test_rejection_raises_invalidation_failure(self, trigger: InvalidationTrigger, fake_cloudfront: FakeCloudFrontClient):
        fake_cloudfront.failures = [client_error("AccessDenied", 403, "CreateInvalidation")]

        with pytest.raises(InvalidationFailure) as exc_info:
            trigger.fire({"index.html"})

        assert exc_info.value.request is not None
        assert exc_info.value.request.invalidation_id is None


class TestCdnClient:
    def test_status(self, cdn_client: CdnClient):
        assert cdn_client.get_invalidation_status("E2EXAMPLE", "I0001") == "Completed"
