"""UserManagement concept: user accounts and preferences.

Actions return a success mapping or {"error": message}; queries return
lists of row mappings.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import IntegrityError

from platemate.engine.concepts import Concept, action, query
from platemate.server.database import PREFERENCE_FIELDS

if TYPE_CHECKING:
    from platemate.server.database import Database
    from platemate.server.models import User

logger = logging.getLogger(__name__)

UserManagement = Concept("UserManagement")


def user_to_row(user: User) -> dict[str, Any]:
    """Convert a User to a query row."""
    preferences = user.preferences
    return {
        "user": user.id,
        "username": user.username,
        "email": user.email,
        "preferences": {
            "default_increment": preferences.default_increment if preferences else None,
            "units": preferences.units if preferences else None,
            "notifications": preferences.notifications if preferences else None,
        },
    }


class UserManagementConcept:
    """Manage user accounts and their preferences."""

    def __init__(self, db: Database) -> None:
        self._db = db

    @action
    def create_user(self, username: str, email: str) -> dict[str, Any]:
        """Create a user with default preferences.

        Requires username and email to be unique.
        """
        if not username or not email:
            return {"error": "Username and email are required"}
        if self._db.get_user_by_username(username):
            return {"error": f"Username '{username}' already exists"}
        if self._db.get_user_by_email(email):
            return {"error": f"Email '{email}' already exists"}
        try:
            user = self._db.create_user(username, email)
        except IntegrityError:
            logger.info("Concurrent registration for %s lost the race", username)
            return {"error": f"Username '{username}' or email '{email}' already exists"}
        logger.info("Created user %s (%s)", username, user.id)
        return {"user": user.id}

    @action
    def update_preferences(self, user: str, preferences: dict[str, Any]) -> dict[str, Any]:
        """Update a user's preferences.

        Only default_increment, units and notifications are applied.
        """
        if not isinstance(preferences, dict):
            return {"error": "Preferences must be an object"}
        changes = {name: preferences[name] for name in PREFERENCE_FIELDS if name in preferences}
        if not changes:
            return {"error": "No valid preferences provided to update"}
        if not self._db.update_preferences(user, changes):
            return {"error": f"User with ID {user} not found"}
        return {}

    @action
    def delete_user(self, user: str) -> dict[str, Any]:
        """Delete a user and their preferences."""
        if not self._db.delete_user(user):
            return {"error": f"User with ID {user} not found"}
        logger.info("Deleted user %s", user)
        return {}

    @query
    def _get_user(self, user: str) -> list[dict[str, Any]]:
        found = self._db.get_user(user)
        return [user_to_row(found)] if found else []

    @query
    def _get_all_users(self) -> list[dict[str, Any]]:
        return [user_to_row(user) for user in self._db.list_users()]
