"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from pydantic import BaseModel

from platemate.engine.sync import Sync

# === Health schema ===


class HealthResponse(BaseModel):
    """Health check response."""

    status: str


# === Engine schemas ===


class SyncResponse(BaseModel):
    """Registered synchronization in responses."""

    name: str
    when: list[str]
    then: list[str]
    has_where: bool


class RoutesResponse(BaseModel):
    """Passthrough configuration in responses."""

    inclusions: dict[str, str]
    exclusions: list[str]
    unverified: list[str]


class EngineStatsResponse(BaseModel):
    """Action log statistics."""

    invocations: int
    chains: int
    max_cascade_depth: int


# === Error schema ===


class ErrorResponse(BaseModel):
    """Failure payload returned by a respond action or passthrough."""

    error: str


# === Converters ===


def sync_to_response(sync: Sync) -> SyncResponse:
    """Convert Sync to response model."""
    return SyncResponse(**sync.describe())
