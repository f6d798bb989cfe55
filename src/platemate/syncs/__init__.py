"""Synchronizations module - Every rule the application registers."""

from platemate.syncs import users

ALL_SYNCS = [
    *users.SYNCS,
]

__all__ = ["ALL_SYNCS"]
