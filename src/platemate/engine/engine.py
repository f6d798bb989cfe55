"""Synchronization engine: dispatch, rule evaluation and cascades.

For every completed invocation the engine evaluates each registered rule:

    MatchingWhen -> RunningWhere -> DispatchingThen

MatchingWhen works on a frozen snapshot of the invocation's causal chain,
taken once before any rule runs. The new invocation must take part in
every match, so a rule fires at most once for a given combination of
invocations. All rules are matched (and their where clauses run) before
any of them dispatches; dispatches then run in registration order and
each one recursively re-enters the engine, depth first, until the
cascade reaches a fixpoint or the configured depth limit.

Error handling:
- No match or an unbound then variable: the frame is skipped silently
- A where clause raising: logged, no frames survive for that rule only
- A concept operation raising, or the depth limit: propagates out of
  invoke() and aborts this chain only
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from platemate.core.config import DEFAULT_MAX_CASCADE_DEPTH
from platemate.engine.frames import Frame, Frames
from platemate.engine.log import ActionLog
from platemate.engine.matcher import match_invocation
from platemate.engine.patterns import resolve
from platemate.engine.types import (
    CascadeLimitError,
    DuplicateSyncError,
    InvocationKind,
    OperationContractError,
    UnknownOperationError,
)

if TYPE_CHECKING:
    from platemate.engine.concepts import ConceptRegistry
    from platemate.engine.sync import Sync
    from platemate.engine.types import Invocation, Operation

logger = logging.getLogger(__name__)


class SyncEngine:
    """Runs synchronizations against an action log.

    One instance per process, constructed at startup with the concept
    registry; the log may be injected for inspection in tests.
    """

    def __init__(
        self,
        registry: ConceptRegistry,
        log: ActionLog | None = None,
        max_cascade_depth: int = DEFAULT_MAX_CASCADE_DEPTH,
    ) -> None:
        """Initialize the engine.

        Args:
            registry: Concepts whose operations rules may target.
            log: Action log; a fresh one is created when omitted.
            max_cascade_depth: Deepest causal depth a dispatch may have.
        """
        self._registry = registry
        self._log = log if log is not None else ActionLog()
        self._max_depth = max_cascade_depth
        self._syncs: dict[str, Sync] = {}

    @property
    def registry(self) -> ConceptRegistry:
        """Get the concept registry."""
        return self._registry

    @property
    def log(self) -> ActionLog:
        """Get the action log."""
        return self._log

    @property
    def max_cascade_depth(self) -> int:
        """Get the cascade depth limit."""
        return self._max_depth

    @property
    def syncs(self) -> list[Sync]:
        """Get the registered synchronizations in registration order."""
        return list(self._syncs.values())

    def register(self, *syncs: Sync) -> None:
        """Register synchronizations.

        Raises:
            UnknownOperationError: If a rule targets an unregistered operation.
            DuplicateSyncError: If a rule name is already registered.
        """
        for sync in syncs:
            if not sync.name:
                raise ValueError("Synchronizations must be named; use the @sync decorator")
            if sync.name in self._syncs:
                raise DuplicateSyncError(f"Synchronization {sync.name!r} already registered")
            for target in sync.targets:
                if target not in self._registry:
                    raise UnknownOperationError(
                        f"Synchronization {sync.name!r} targets unknown operation {target}"
                    )
            self._syncs[sync.name] = sync
            logger.debug("Registered synchronization %s", sync.name)

    async def invoke(
        self,
        operation: Operation,
        input: Mapping[str, Any] | None = None,
        parent: Invocation | None = None,
    ) -> Invocation:
        """Dispatch an operation and run its cascade to completion.

        Args:
            operation: Action or query to invoke.
            input: Arguments.
            parent: Invocation whose rule dispatched this one; None for
                external triggers, which start a new causal chain.

        Returns:
            The completed invocation.

        Raises:
            UnknownOperationError: If the operation is not registered.
            CascadeLimitError: If the dispatch is deeper than the limit.
        """
        self._registry.resolve(operation)
        if parent is not None and parent.depth + 1 > self._max_depth:
            logger.error(
                "Cascade limit reached at %s (root %d); possible synchronization cycle",
                operation,
                parent.root,
            )
            raise CascadeLimitError(operation, parent.depth + 1, parent.root, self._max_depth)

        invocation = self._log.append(operation, input or {}, parent)
        logger.debug(
            "Dispatching %s (id=%d, parent=%s, root=%d)",
            operation,
            invocation.id,
            invocation.parent,
            invocation.root,
        )
        invocation.complete(await self._execute(operation, invocation.input))
        await self._cascade(invocation)
        return invocation

    async def _execute(self, operation: Operation, args: Mapping[str, Any]) -> Mapping[str, Any]:
        if operation.kind is InvocationKind.QUERY:
            rows = await self._registry.run_query(operation, args)
            return {"rows": rows}
        result = await self._registry.call(operation, args)
        if result is None:
            return {}
        if not isinstance(result, Mapping):
            raise OperationContractError(
                f"Action {operation} must return a mapping, got {type(result).__name__}"
            )
        return result

    async def _cascade(self, trigger: Invocation) -> None:
        chain = self._log.chain(trigger.root)

        planned: list[tuple[Sync, Frames]] = []
        for sync in self._syncs.values():
            frames = self.match_when(sync, trigger, chain)
            if not frames:
                continue
            frames = await self._run_where(sync, frames)
            if frames:
                planned.append((sync, frames))

        for sync, frames in planned:
            await self._dispatch_then(sync, frames, trigger)

    def match_when(
        self,
        sync: Sync,
        trigger: Invocation,
        chain: tuple[Invocation, ...],
    ) -> Frames:
        """Find every consistent assignment of a rule's when patterns.

        Each when pattern is assigned a distinct completed invocation of the
        chain, the trigger occupying one of the positions. Every consistent
        assignment yields one frame, traced in pattern order.

        Args:
            sync: Rule to match.
            trigger: Newly completed invocation.
            chain: Snapshot of the trigger's causal chain.

        Returns:
            Matching frames, possibly empty.
        """
        when = sync.when
        others = [inv for inv in chain if inv.completed and inv.id != trigger.id]
        frames: list[Frame] = []

        def search(index: int, position: int, frame: Frame, used: frozenset[int]) -> None:
            if index == len(when):
                frames.append(frame)
                return
            options = [trigger] if index == position else others
            for candidate in options:
                if candidate.id in used:
                    continue
                refined = match_invocation(candidate, when[index], frame)
                if refined is not None:
                    search(index + 1, position, refined, used | {candidate.id})

        for position, pattern in enumerate(when):
            if match_invocation(trigger, pattern, Frame()) is None:
                continue
            search(0, position, Frame(), frozenset())

        return Frames.of(frames, registry=self._registry)

    async def _run_where(self, sync: Sync, frames: Frames) -> Frames:
        if sync.where is None:
            return frames
        try:
            result = sync.where(frames)
            if inspect.isawaitable(result):
                result = await result
        except Exception:
            logger.exception("Where clause of %s failed; no frames survive", sync.name)
            return Frames(registry=self._registry)
        if not isinstance(result, Frames):
            logger.error(
                "Where clause of %s returned %s instead of Frames; no frames survive",
                sync.name,
                type(result).__name__,
            )
            return Frames(registry=self._registry)
        return result

    async def _dispatch_then(self, sync: Sync, frames: Frames, trigger: Invocation) -> None:
        needed: set[str] = set()
        for clause in sync.then:
            needed |= clause.variables

        for frame in frames:
            missing = needed.difference(frame)
            if missing:
                logger.debug(
                    "Skipping frame of %s: unbound %s", sync.name, ", ".join(sorted(missing))
                )
                continue
            logger.info("Firing %s (trigger=%d, root=%d)", sync.name, trigger.id, trigger.root)
            for clause in sync.then:
                args = resolve(clause.input, frame)
                if args is None:
                    continue
                await self.invoke(clause.target, args, parent=trigger)
