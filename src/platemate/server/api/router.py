"""Main API router that includes all sub-routers."""

from __future__ import annotations

from fastapi import APIRouter

from platemate.server.api import concepts, engine, health


def build_router(base_url: str) -> APIRouter:
    """Assemble the API router.

    Args:
        base_url: Prefix for concept routes (e.g. "/api").

    Returns:
        Router with health, engine introspection and concept routes.
    """
    router = APIRouter()
    router.include_router(health.router)
    router.include_router(engine.router)
    router.include_router(concepts.router, prefix=base_url)
    return router
