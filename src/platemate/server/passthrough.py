"""Passthrough routes.

By default a POST to {base_url}/{Concept}/{operation} calls the concept
operation directly. That is convenient for public queries but must be a
deliberate choice, so routes are listed here:

- INCLUSIONS: passthrough routes, each with a justification
- EXCLUSIONS: routes that trigger Requesting.request instead, to be
  handled by synchronizations

Registered operations in neither list still pass through, and are
reported as unverified at startup. Paths that are not registered
operations always become requests.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from platemate.engine.types import Operation

if TYPE_CHECKING:
    from platemate.engine.concepts import ConceptRegistry

INCLUSIONS: dict[str, str] = {
    # UserManagement - Read-only queries
    "/UserManagement/_get_user": "public read-only user query",
}

EXCLUSIONS: list[str] = [
    # UserManagement - State-modifying actions
    "/UserManagement/create_user",
    "/UserManagement/update_preferences",
    "/UserManagement/delete_user",
    # UserManagement - Exposes emails; served by the list_users request instead
    "/UserManagement/_get_all_users",
    # Requesting - Internal to the request/response cycle
    "/Requesting/request",
    "/Requesting/respond",
    "/Requesting/_get_response",
]


class RouteKind(str, Enum):
    """How a concept route is served."""

    PASSTHROUGH = "passthrough"
    REQUEST = "request"


def route_path(operation: Operation) -> str:
    """Get the route path of an operation, without base URL."""
    return f"/{operation.concept}/{operation.name}"


def classify_route(
    concept: str,
    operation: str,
    registry: ConceptRegistry,
    exclusions: list[str] | None = None,
) -> RouteKind:
    """Decide whether a route passes through or becomes a request.

    Args:
        concept: Concept segment of the route.
        operation: Operation segment of the route.
        registry: Registered concepts.
        exclusions: Excluded routes (default: EXCLUSIONS).

    Returns:
        RouteKind.PASSTHROUGH for registered, non-excluded operations,
        RouteKind.REQUEST otherwise.
    """
    excluded = EXCLUSIONS if exclusions is None else exclusions
    target = Operation(concept, operation)
    if route_path(target) in excluded or target not in registry:
        return RouteKind.REQUEST
    return RouteKind.PASSTHROUGH


def unverified_routes(
    registry: ConceptRegistry,
    inclusions: dict[str, str] | None = None,
    exclusions: list[str] | None = None,
) -> list[str]:
    """Get registered routes that are neither included nor excluded."""
    included = INCLUSIONS if inclusions is None else inclusions
    excluded = EXCLUSIONS if exclusions is None else exclusions
    return [
        route_path(op)
        for op in registry.operations()
        if route_path(op) not in included and route_path(op) not in excluded
    ]
