"""Concept state database using SQLAlchemy with SQLite.

This module provides:
- User account storage with uniqueness on username and email
- Per-user preferences, created with defaults alongside the user
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, joinedload

from platemate.server.models import Base, Preferences, User

if TYPE_CHECKING:
    from sqlalchemy import Engine

# Preference fields a client may change
PREFERENCE_FIELDS = ("default_increment", "units", "notifications")


class Database:
    """SQLAlchemy database for concept state.

    Uses SQLite with WAL mode for better concurrency with multiple readers.
    Uniqueness checks done by concepts race between concurrent requests;
    the unique constraints are the final arbiter.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the database.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        # Create engine with check_same_thread=False for multi-threaded access
        self._engine: Engine = create_engine(
            f"sqlite:///{self._db_path}",
            connect_args={"check_same_thread": False},
            echo=False,
        )

        # Enable WAL mode
        with self._engine.connect() as conn:
            conn.exec_driver_sql("PRAGMA journal_mode=WAL")
            conn.exec_driver_sql("PRAGMA foreign_keys=ON")

        # Create tables if they don't exist
        Base.metadata.create_all(self._engine)

    @property
    def path(self) -> Path:
        """Get the database file path."""
        return self._db_path

    def close(self) -> None:
        """Close the database connection."""
        self._engine.dispose()

    def _session(self) -> Session:
        """Create a new database session."""
        return Session(self._engine)

    # === User operations ===

    def create_user(self, username: str, email: str) -> User:
        """Create a user with default preferences.

        Args:
            username: Unique username.
            email: Unique email address.

        Returns:
            Created User object with preferences loaded.

        Raises:
            IntegrityError: If username or email already exists.
        """
        with self._session() as session:
            user = User(username=username, email=email)
            user.preferences = Preferences()
            session.add(user)
            session.commit()
            session.refresh(user)
            # Load preferences before detaching
            _ = user.preferences
            session.expunge_all()
            return user

    def get_user(self, user_id: str) -> User | None:
        """Get a user by ID, with preferences.

        Args:
            user_id: User ID.

        Returns:
            User if found, None otherwise.
        """
        with self._session() as session:
            stmt = (
                select(User).options(joinedload(User.preferences)).where(User.id == user_id)
            )
            user = session.execute(stmt).scalar_one_or_none()
            if user:
                session.expunge_all()
            return user

    def get_user_by_username(self, username: str) -> User | None:
        """Get a user by username."""
        with self._session() as session:
            stmt = select(User).where(User.username == username)
            user = session.execute(stmt).scalar_one_or_none()
            if user:
                session.expunge(user)
            return user

    def get_user_by_email(self, email: str) -> User | None:
        """Get a user by email."""
        with self._session() as session:
            stmt = select(User).where(User.email == email)
            user = session.execute(stmt).scalar_one_or_none()
            if user:
                session.expunge(user)
            return user

    def list_users(self) -> list[User]:
        """List all users ordered by username, with preferences."""
        with self._session() as session:
            stmt = select(User).options(joinedload(User.preferences)).order_by(User.username)
            users = list(session.execute(stmt).scalars().all())
            session.expunge_all()
            return users

    def update_preferences(self, user_id: str, changes: dict[str, Any]) -> bool:
        """Update a user's preferences.

        Args:
            user_id: User ID.
            changes: Field name to new value; only PREFERENCE_FIELDS are applied.

        Returns:
            True if preferences were found and updated, False otherwise.
        """
        with self._session() as session:
            stmt = select(Preferences).where(Preferences.user_id == user_id)
            preferences = session.execute(stmt).scalar_one_or_none()
            if preferences is None:
                return False
            for name in PREFERENCE_FIELDS:
                if name in changes:
                    setattr(preferences, name, changes[name])
            session.commit()
            return True

    def delete_user(self, user_id: str) -> bool:
        """Delete a user and their preferences.

        Returns:
            True if the user was deleted, False if not found.
        """
        with self._session() as session:
            user = session.get(User, user_id)
            if not user:
                return False
            session.delete(user)
            session.commit()
            return True
