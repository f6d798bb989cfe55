"""Tests for the UserManagement concept."""

from collections.abc import Generator
from pathlib import Path

import pytest

from platemate.concepts.users import UserManagementConcept
from platemate.server.database import Database


@pytest.fixture
def db(tmp_path: Path) -> Generator[Database, None, None]:
    """Create a test database."""
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


@pytest.fixture
def users(db: Database) -> UserManagementConcept:
    """Create a UserManagement concept."""
    return UserManagementConcept(db)


class TestCreateUser:
    """Tests for UserManagement.create_user."""

    def test_create_user(self, users: UserManagementConcept) -> None:
        """Should return the new user's id."""
        result = users.create_user("alice", "alice@example.com")
        assert "user" in result
        assert users._get_user(result["user"])[0]["username"] == "alice"

    def test_default_preferences(self, users: UserManagementConcept) -> None:
        """New users should get default preferences."""
        user_id = users.create_user("alice", "alice@example.com")["user"]
        assert users._get_user(user_id)[0]["preferences"] == {
            "default_increment": 5.0,
            "units": "lbs",
            "notifications": True,
        }

    def test_duplicate_username(self, users: UserManagementConcept) -> None:
        """Usernames must be unique."""
        users.create_user("alice", "alice@example.com")
        result = users.create_user("alice", "other@example.com")
        assert result == {"error": "Username 'alice' already exists"}

    def test_duplicate_email(self, users: UserManagementConcept) -> None:
        """Emails must be unique."""
        users.create_user("alice", "alice@example.com")
        result = users.create_user("bob", "alice@example.com")
        assert result == {"error": "Email 'alice@example.com' already exists"}

    def test_missing_fields(self, users: UserManagementConcept) -> None:
        """Username and email are required."""
        assert "error" in users.create_user("", "alice@example.com")
        assert "error" in users.create_user("alice", "")


class TestUpdatePreferences:
    """Tests for UserManagement.update_preferences."""

    def test_update(self, users: UserManagementConcept) -> None:
        """Valid fields should be applied."""
        user_id = users.create_user("alice", "alice@example.com")["user"]
        assert users.update_preferences(user_id, {"units": "kg", "default_increment": 2.5}) == {}
        preferences = users._get_user(user_id)[0]["preferences"]
        assert preferences["units"] == "kg"
        assert preferences["default_increment"] == 2.5
        assert preferences["notifications"] is True

    def test_unknown_fields_ignored(self, users: UserManagementConcept) -> None:
        """Only known preference fields are applied."""
        user_id = users.create_user("alice", "alice@example.com")["user"]
        assert users.update_preferences(user_id, {"units": "kg", "theme": "dark"}) == {}

    def test_no_valid_fields(self, users: UserManagementConcept) -> None:
        """An update without known fields is a failure."""
        user_id = users.create_user("alice", "alice@example.com")["user"]
        result = users.update_preferences(user_id, {"theme": "dark"})
        assert result == {"error": "No valid preferences provided to update"}

    def test_not_an_object(self, users: UserManagementConcept) -> None:
        """Preferences must be a mapping."""
        user_id = users.create_user("alice", "alice@example.com")["user"]
        assert "error" in users.update_preferences(user_id, "kg")  # type: ignore[arg-type]

    def test_unknown_user(self, users: UserManagementConcept) -> None:
        """Updating a missing user is a failure."""
        result = users.update_preferences("missing", {"units": "kg"})
        assert result == {"error": "User with ID missing not found"}


class TestDeleteUser:
    """Tests for UserManagement.delete_user."""

    def test_delete(self, users: UserManagementConcept) -> None:
        """Deleted users should disappear."""
        user_id = users.create_user("alice", "alice@example.com")["user"]
        assert users.delete_user(user_id) == {}
        assert users._get_user(user_id) == []

    def test_delete_unknown(self, users: UserManagementConcept) -> None:
        """Deleting a missing user is a failure."""
        assert "error" in users.delete_user("missing")


class TestQueries:
    """Tests for UserManagement queries."""

    def test_get_user_missing(self, users: UserManagementConcept) -> None:
        """Missing users give no rows."""
        assert users._get_user("missing") == []

    def test_get_all_users_ordered(self, users: UserManagementConcept) -> None:
        """All users should be listed by username."""
        users.create_user("carol", "carol@example.com")
        users.create_user("alice", "alice@example.com")
        rows = users._get_all_users()
        assert [row["username"] for row in rows] == ["alice", "carol"]
        assert set(rows[0]) == {"user", "username", "email", "preferences"}

    def test_get_all_users_empty(self, users: UserManagementConcept) -> None:
        """No users gives no rows."""
        assert users._get_all_users() == []
