"""Tests for passthrough route classification."""

from collections.abc import Generator
from pathlib import Path

import pytest

from platemate.concepts import build_registry
from platemate.concepts.users import UserManagement
from platemate.engine.concepts import ConceptRegistry
from platemate.server.database import Database
from platemate.server.passthrough import (
    RouteKind,
    classify_route,
    route_path,
    unverified_routes,
)


@pytest.fixture
def registry(tmp_path: Path) -> Generator[ConceptRegistry, None, None]:
    """Create the application registry on a test database."""
    database = Database(tmp_path / "test.db")
    yield build_registry(database)
    database.close()


class TestClassifyRoute:
    """Tests for classify_route."""

    def test_included_query_passes_through(self, registry: ConceptRegistry) -> None:
        """Included operations are called directly."""
        assert classify_route("UserManagement", "_get_user", registry) is RouteKind.PASSTHROUGH

    def test_excluded_action_is_a_request(self, registry: ConceptRegistry) -> None:
        """Excluded operations go through Requesting."""
        assert classify_route("UserManagement", "create_user", registry) is RouteKind.REQUEST

    def test_unregistered_route_is_a_request(self, registry: ConceptRegistry) -> None:
        """Routes naming no operation go through Requesting."""
        assert classify_route("UserManagement", "list_users", registry) is RouteKind.REQUEST

    def test_custom_exclusions(self, registry: ConceptRegistry) -> None:
        """Callers may supply their own exclusion list."""
        kind = classify_route(
            "UserManagement",
            "create_user",
            registry,
            exclusions=[],
        )
        assert kind is RouteKind.PASSTHROUGH


class TestUnverifiedRoutes:
    """Tests for unverified_routes."""

    def test_application_routes_are_all_listed(self, registry: ConceptRegistry) -> None:
        """Every registered route should be included or excluded."""
        assert unverified_routes(registry) == []

    def test_unlisted_routes_reported(self, registry: ConceptRegistry) -> None:
        """Routes in neither list are reported."""
        unverified = unverified_routes(registry, inclusions={}, exclusions=[])
        assert route_path(UserManagement._get_user) in unverified
        assert "/Requesting/request" in unverified
