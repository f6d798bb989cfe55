"""FastAPI dependencies for API routes."""

from __future__ import annotations

from fastapi import Request

from platemate.concepts.requesting import Requesting, RequestingConcept
from platemate.core.config import PlateMateConfig
from platemate.engine.engine import SyncEngine


def get_config(request: Request) -> PlateMateConfig:
    """Get configuration from app state."""
    config: PlateMateConfig = request.app.state.config
    return config


def get_engine(request: Request) -> SyncEngine:
    """Get synchronization engine from app state."""
    engine: SyncEngine = request.app.state.engine
    return engine


def get_requesting(request: Request) -> RequestingConcept:
    """Get the Requesting concept instance registered with the engine."""
    requesting: RequestingConcept = get_engine(request).registry.concept(Requesting.name)
    return requesting
