"""Append-only action/query log with causal parent links.

Invocations are grouped by causal root: an external trigger (for example
one HTTP request) starts a new root and everything its synchronizations
dispatch is appended to that root's chain. Append order within a chain is
causal order, since a parent is always appended before its children.

The log is shared between the event loop and the maintenance scheduler
thread, so every operation holds an RLock.
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from collections.abc import Iterator, Mapping
from typing import Any

from platemate.engine.types import Invocation, Operation, freeze

logger = logging.getLogger(__name__)


class ActionLog:
    """Record of invocations, retained per causal chain."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._ids = itertools.count(1)
        self._invocations: dict[int, Invocation] = {}
        self._chains: dict[int, list[int]] = {}  # root id -> ids in append order

    def __len__(self) -> int:
        with self._lock:
            return len(self._invocations)

    def __contains__(self, invocation_id: object) -> bool:
        with self._lock:
            return invocation_id in self._invocations

    def append(
        self,
        target: Operation,
        input: Mapping[str, Any],
        parent: Invocation | None = None,
    ) -> Invocation:
        """Record a new pending invocation.

        Args:
            target: Operation being invoked.
            input: Invocation arguments.
            parent: Invocation whose synchronization dispatched this one,
                None for external triggers.

        Returns:
            The appended invocation with its fresh id.
        """
        with self._lock:
            invocation_id = next(self._ids)
            if parent is None:
                root, depth = invocation_id, 0
            else:
                root, depth = parent.root, parent.depth + 1
            invocation = Invocation(
                id=invocation_id,
                target=target,
                input=freeze(input),
                parent=parent.id if parent is not None else None,
                root=root,
                depth=depth,
            )
            self._invocations[invocation_id] = invocation
            self._chains.setdefault(root, []).append(invocation_id)
            return invocation

    def get(self, invocation_id: int) -> Invocation | None:
        """Get an invocation by id."""
        with self._lock:
            return self._invocations.get(invocation_id)

    def roots(self) -> list[int]:
        """Get the ids of the retained causal roots."""
        with self._lock:
            return list(self._chains)

    def chain(self, root_id: int) -> tuple[Invocation, ...]:
        """Get a frozen snapshot of a root and all its descendants.

        Returns:
            Invocations in causal order, empty if the root is unknown.
        """
        with self._lock:
            ids = self._chains.get(root_id, ())
            return tuple(self._invocations[i] for i in ids)

    def descendants_of(self, invocation_id: int) -> Iterator[Invocation]:
        """Iterate over the invocations causally descended from one invocation.

        The snapshot is taken when iteration starts; parents always come
        before their children.
        """
        invocation = self.get(invocation_id)
        if invocation is None:
            return
        members = {invocation_id}
        for candidate in self.chain(invocation.root):
            if candidate.parent is not None and candidate.parent in members:
                members.add(candidate.id)
                yield candidate

    def release(self, root_id: int) -> int:
        """Forget a whole causal chain.

        Returns:
            Number of invocations released.
        """
        with self._lock:
            ids = self._chains.pop(root_id, [])
            for invocation_id in ids:
                self._invocations.pop(invocation_id, None)
            return len(ids)

    def prune(self, older_than: float) -> int:
        """Release chains whose root was appended more than older_than seconds ago.

        Returns:
            Number of chains released.
        """
        cutoff = time.monotonic() - older_than
        with self._lock:
            stale = [
                root for root in self._chains if self._invocations[root].created_at < cutoff
            ]
            for root in stale:
                self.release(root)
        if stale:
            logger.debug("Pruned %d causal chains from the action log", len(stale))
        return len(stale)
