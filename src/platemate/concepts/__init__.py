"""Concepts module - Requesting and UserManagement."""

from __future__ import annotations

from typing import TYPE_CHECKING

from platemate.concepts.requesting import Requesting, RequestingConcept
from platemate.concepts.users import UserManagement, UserManagementConcept
from platemate.engine.concepts import ConceptRegistry

if TYPE_CHECKING:
    from platemate.server.database import Database


def build_registry(db: Database) -> ConceptRegistry:
    """Register every concept of the application.

    Args:
        db: Database backing persistent concepts.

    Returns:
        Registry with Requesting and UserManagement.
    """
    registry = ConceptRegistry()
    registry.register(Requesting.name, RequestingConcept())
    registry.register(UserManagement.name, UserManagementConcept(db))
    return registry


__all__ = [
    "Requesting",
    "RequestingConcept",
    "UserManagement",
    "UserManagementConcept",
    "build_registry",
]
