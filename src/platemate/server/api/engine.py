"""Engine introspection API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from platemate.engine.engine import SyncEngine
from platemate.server.api.deps import get_engine
from platemate.server.passthrough import EXCLUSIONS, INCLUSIONS, unverified_routes
from platemate.server.schemas import (
    EngineStatsResponse,
    RoutesResponse,
    SyncResponse,
    sync_to_response,
)

router = APIRouter(prefix="/engine", tags=["engine"])


@router.get("/syncs", response_model=list[SyncResponse])
def list_syncs(engine: SyncEngine = Depends(get_engine)) -> list[SyncResponse]:
    """List registered synchronizations in registration order."""
    return [sync_to_response(sync) for sync in engine.syncs]


@router.get("/routes", response_model=RoutesResponse)
def list_routes(engine: SyncEngine = Depends(get_engine)) -> RoutesResponse:
    """List passthrough inclusions, exclusions and unverified routes."""
    return RoutesResponse(
        inclusions=INCLUSIONS,
        exclusions=EXCLUSIONS,
        unverified=unverified_routes(engine.registry),
    )


@router.get("/stats", response_model=EngineStatsResponse)
def engine_stats(engine: SyncEngine = Depends(get_engine)) -> EngineStatsResponse:
    """Get action log statistics."""
    return EngineStatsResponse(
        invocations=len(engine.log),
        chains=len(engine.log.roots()),
        max_cascade_depth=engine.max_cascade_depth,
    )
