"""Tests for the Requesting concept."""

import logging
import time
from unittest.mock import patch

import pytest

from platemate.concepts.requesting import RequestingConcept


@pytest.fixture
def requesting() -> RequestingConcept:
    """Create a Requesting concept."""
    return RequestingConcept()


class TestRequest:
    """Tests for Requesting.request."""

    def test_returns_unique_ids(self, requesting: RequestingConcept) -> None:
        """Each request should get its own id."""
        first = requesting.request("/Widget/create", name="gear")["request"]
        second = requesting.request("/Widget/create", name="gear")["request"]
        assert first != second
        assert len(requesting) == 2

    def test_unanswered_request_has_no_response(self, requesting: RequestingConcept) -> None:
        """A fresh request has no response yet."""
        request_id = requesting.request("/Widget/create")["request"]
        assert requesting._get_response(request_id) == []


class TestRespond:
    """Tests for Requesting.respond."""

    def test_stores_response(self, requesting: RequestingConcept) -> None:
        """The response fields should be stored for the request."""
        request_id = requesting.request("/Widget/create")["request"]
        assert requesting.respond(request_id, widget="w1") == {"request": request_id}
        assert requesting._get_response(request_id) == [{"widget": "w1"}]

    def test_unknown_request(
        self, requesting: RequestingConcept, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Responding to an unknown request is a failure."""
        with caplog.at_level(logging.WARNING):
            result = requesting.respond("missing", widget="w1")
        assert "error" in result
        assert "unknown request" in caplog.text

    def test_second_response_rejected(self, requesting: RequestingConcept) -> None:
        """Only the first response is kept."""
        request_id = requesting.request("/Widget/create")["request"]
        requesting.respond(request_id, widget="w1")
        result = requesting.respond(request_id, widget="w2")
        assert result["error"] == f"Request {request_id} already answered"
        assert requesting._get_response(request_id) == [{"widget": "w1"}]


class TestPopAndPrune:
    """Tests for collecting and pruning requests."""

    def test_pop_returns_and_forgets(self, requesting: RequestingConcept) -> None:
        """Pop should hand out the response once."""
        request_id = requesting.request("/Widget/create")["request"]
        requesting.respond(request_id, error="Name is required")
        assert requesting.pop(request_id) == {"error": "Name is required"}
        assert requesting.pop(request_id) is None
        assert len(requesting) == 0

    def test_pop_unanswered(self, requesting: RequestingConcept) -> None:
        """Popping an unanswered request forgets it and returns None."""
        request_id = requesting.request("/Widget/create")["request"]
        assert requesting.pop(request_id) is None
        assert len(requesting) == 0

    def test_prune_old_requests(self, requesting: RequestingConcept) -> None:
        """Requests older than the retention period are forgotten."""
        requesting.request("/Widget/create")
        assert requesting.prune(300) == 0
        with patch("platemate.concepts.requesting.time.monotonic", return_value=time.monotonic() + 1000):
            assert requesting.prune(300) == 1
        assert len(requesting) == 0
