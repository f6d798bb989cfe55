"""Concept routes: passthrough calls and synchronized requests.

POST {base_url}/{concept}/{operation} with a JSON object body is served
either by calling the operation directly (passthrough) or by invoking
Requesting.request and returning whatever Requesting.respond stored for it
once the cascade is complete.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from collections.abc import Callable
from functools import partial
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from platemate.concepts.requesting import Requesting, RequestingConcept
from platemate.core.config import PlateMateConfig
from platemate.engine.engine import SyncEngine
from platemate.engine.types import FAILURE_KEY, Invocation, InvocationKind, Operation
from platemate.server.api.deps import get_config, get_engine, get_requesting
from platemate.server.passthrough import RouteKind, classify_route
from platemate.server.schemas import ErrorResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["concepts"])


async def _read_body(request: Request) -> dict[str, Any]:
    """Parse the request body as a JSON object (empty body = {})."""
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Request body must be valid JSON",
        ) from e
    if not isinstance(body, dict):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Request body must be a JSON object",
        )
    return body


def _respond(payload: Any) -> JSONResponse:
    """Build the HTTP response for an operation or respond payload."""
    if isinstance(payload, dict) and FAILURE_KEY in payload:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=payload)
    return JSONResponse(status_code=status.HTTP_200_OK, content=payload)


@router.post(
    "/{concept}/{operation}",
    responses={400: {"model": ErrorResponse}},
)
async def concept_route(
    concept: str,
    operation: str,
    request: Request,
    engine: SyncEngine = Depends(get_engine),
    requesting: RequestingConcept = Depends(get_requesting),
    config: PlateMateConfig = Depends(get_config),
) -> JSONResponse:
    """Serve a concept route by passthrough or through synchronizations."""
    body = await _read_body(request)
    kind = classify_route(concept, operation, engine.registry)
    if kind is RouteKind.PASSTHROUGH:
        return await _passthrough(Operation(concept, operation), body, engine, config)
    return await _synchronized(f"/{concept}/{operation}", body, engine, requesting, config)


_detached: set[asyncio.Task[Invocation]] = set()


async def _invoke_within(
    engine: SyncEngine,
    target: Operation,
    args: dict[str, Any],
    timeout: float,
    settle: Callable[[Invocation], None],
) -> Invocation:
    """Wait up to timeout for a cascade without cancelling it.

    The cascade runs as its own task. If the wait gives up, the task keeps
    running to its fixpoint and settle() is called with the root invocation
    once it is done.
    """
    task = asyncio.ensure_future(engine.invoke(target, args))
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
    except (TimeoutError, asyncio.CancelledError):
        _detached.add(task)
        task.add_done_callback(partial(_settle_detached, settle))
        raise


def _settle_detached(settle: Callable[[Invocation], None], task: asyncio.Task[Invocation]) -> None:
    _detached.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error("Detached cascade failed", exc_info=error)
        return
    invocation = task.result()
    logger.info("Detached cascade for %s finished (root=%d)", invocation.target, invocation.root)
    settle(invocation)


def _release(engine: SyncEngine, config: PlateMateConfig, invocation: Invocation) -> None:
    if not config.retain_log:
        engine.log.release(invocation.root)


def _discard_request(
    engine: SyncEngine,
    requesting: RequestingConcept,
    config: PlateMateConfig,
    invocation: Invocation,
) -> None:
    request_id = (invocation.output or {}).get("request")
    if request_id:
        requesting.pop(request_id)
    _release(engine, config, invocation)


async def _passthrough(
    target: Operation,
    body: dict[str, Any],
    engine: SyncEngine,
    config: PlateMateConfig,
) -> JSONResponse:
    """Invoke an operation directly and return its output."""
    fn = engine.registry.resolve(target).fn
    try:
        inspect.signature(fn).bind(**body)
    except TypeError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid arguments for {target}: {e}",
        ) from e

    settle = partial(_release, engine, config)
    try:
        invocation = await _invoke_within(engine, target, body, config.request_timeout, settle)
    except TimeoutError as e:
        logger.warning("Passthrough %s timed out after %.1fs", target, config.request_timeout)
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail="Request timed out",
        ) from e
    except Exception as e:
        logger.exception("Passthrough %s failed", target)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Internal error while serving {target}",
        ) from e
    settle(invocation)

    output = dict(invocation.output or {})
    if target.kind is InvocationKind.QUERY:
        return _respond(output["rows"])
    return _respond(output)


async def _synchronized(
    path: str,
    body: dict[str, Any],
    engine: SyncEngine,
    requesting: RequestingConcept,
    config: PlateMateConfig,
) -> JSONResponse:
    """Invoke Requesting.request and return the response rules produced."""
    try:
        invocation = await _invoke_within(
            engine,
            Requesting.request,
            {**body, "path": path},
            config.request_timeout,
            partial(_discard_request, engine, requesting, config),
        )
    except TimeoutError as e:
        logger.warning("Request %s timed out after %.1fs", path, config.request_timeout)
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail="Request timed out",
        ) from e
    except Exception as e:
        logger.exception("Synchronizations for %s failed", path)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Internal error while serving {path}",
        ) from e
    _release(engine, config, invocation)

    request_id = (invocation.output or {}).get("request")
    response = requesting.pop(request_id) if request_id else None
    if response is None:
        logger.warning("No synchronization answered %s", path)
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail=f"No response for {path}",
        )
    return _respond(response)
