"""Requesting concept: request ingress and response correlation.

An HTTP request becomes a root invocation of Requesting.request; rules
answer it by dispatching Requesting.respond with the request id bound from
the same causal chain. The ingress then takes the stored response.

State is in memory: a request only lives as long as its HTTP exchange.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from platemate.engine.concepts import Concept, action, query

logger = logging.getLogger(__name__)

Requesting = Concept("Requesting")


@dataclass
class PendingRequest:
    """A request awaiting its response."""

    id: str
    path: str
    fields: dict[str, Any] = field(default_factory=dict)
    response: dict[str, Any] | None = None
    created_at: float = field(default_factory=time.monotonic)


class RequestingConcept:
    """Records requests and the responses rules produce for them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._requests: dict[str, PendingRequest] = {}

    @action
    def request(self, path: str, **fields: Any) -> dict[str, Any]:
        """Record an incoming request.

        Returns:
            {"request": id}
        """
        request_id = uuid.uuid4().hex
        with self._lock:
            self._requests[request_id] = PendingRequest(request_id, path, dict(fields))
        logger.debug("Request %s received for %s", request_id, path)
        return {"request": request_id}

    @action
    def respond(self, request: str, **fields: Any) -> dict[str, Any]:
        """Store the response to a request.

        Returns:
            {"request": id}, or an error if the request is unknown or
            already answered.
        """
        with self._lock:
            pending = self._requests.get(request)
            if pending is None:
                logger.warning("Response for unknown request %s dropped", request)
                return {"error": f"Request {request} not found"}
            if pending.response is not None:
                logger.warning("Request %s (%s) answered more than once", request, pending.path)
                return {"error": f"Request {request} already answered"}
            pending.response = dict(fields)
        return {"request": request}

    @query
    def _get_response(self, request: str) -> list[dict[str, Any]]:
        """Get the response to a request, if there is one."""
        with self._lock:
            pending = self._requests.get(request)
            if pending is None or pending.response is None:
                return []
            return [dict(pending.response)]

    def pop(self, request: str) -> dict[str, Any] | None:
        """Forget a request and return its response (None if unanswered)."""
        with self._lock:
            pending = self._requests.pop(request, None)
        if pending is None:
            return None
        return pending.response

    def prune(self, older_than: float) -> int:
        """Forget requests received more than older_than seconds ago.

        Returns:
            Number of requests forgotten.
        """
        cutoff = time.monotonic() - older_than
        with self._lock:
            stale = [rid for rid, pending in self._requests.items() if pending.created_at < cutoff]
            for request_id in stale:
                del self._requests[request_id]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)
