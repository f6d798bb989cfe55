"""SQLAlchemy models for PlateMate concept state.

This module defines the database schema using SQLAlchemy ORM.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

DEFAULT_INCREMENT = 5.0
DEFAULT_UNITS = "lbs"


def fresh_id() -> str:
    """Generate a new entity id."""
    return uuid.uuid4().hex


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""


class User(Base):
    """Represents a user account."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=fresh_id)
    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    # Relationships
    preferences: Mapped[Preferences | None] = relationship(
        "Preferences", back_populates="user", cascade="all, delete-orphan", uselist=False
    )


class Preferences(Base):
    """Represents a user's training preferences."""

    __tablename__ = "preferences"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=fresh_id)
    user_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    default_increment: Mapped[float] = mapped_column(
        Float, default=DEFAULT_INCREMENT, nullable=False
    )
    units: Mapped[str] = mapped_column(String(10), default=DEFAULT_UNITS, nullable=False)
    notifications: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Relationships
    user: Mapped[User] = relationship("User", back_populates="preferences")

    # Indexes
    __table_args__ = (Index("idx_preferences_user", "user_id"),)
