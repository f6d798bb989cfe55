"""Concept registry: (concept, operation) -> callable.

Concepts are plain classes whose operations are marked with @action or
@query. Registering an instance scans the marked methods once; after that,
dispatch is a dictionary lookup.

Usage:
    class Counter:
        @action
        def increment(self, name: str) -> dict[str, int]: ...

        @query
        def _value(self, name: str) -> list[dict[str, int]]: ...

    registry = ConceptRegistry()
    registry.register("Counter", Counter())

    Counters = Concept("Counter")
    Counters.increment  # Operation("Counter", "increment")
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

from platemate.engine.types import (
    QUERY_PREFIX,
    InvocationKind,
    Operation,
    QueryContractError,
    UnknownOperationError,
)

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_KIND_ATTR = "__platemate_kind__"


def action(fn: F) -> F:
    """Mark a concept method as an action."""
    if fn.__name__.startswith(QUERY_PREFIX):
        raise ValueError(f"Action {fn.__name__!r} must not start with {QUERY_PREFIX!r}")
    setattr(fn, _KIND_ATTR, InvocationKind.ACTION)
    return fn


def query(fn: F) -> F:
    """Mark a concept method as a query. Query names start with an underscore."""
    if not fn.__name__.startswith(QUERY_PREFIX):
        raise ValueError(f"Query {fn.__name__!r} must start with {QUERY_PREFIX!r}")
    setattr(fn, _KIND_ATTR, InvocationKind.QUERY)
    return fn


@dataclass(frozen=True)
class OperationSpec:
    """A resolved operation."""

    operation: Operation
    fn: Callable[..., Any]

    @property
    def kind(self) -> InvocationKind:
        """Get the operation kind."""
        return self.operation.kind


class Concept:
    """Symbolic handle naming a concept's operations.

    Attribute access returns Operation references, so synchronizations can
    be declared before any concept instance exists. Names are checked when
    the synchronizations are registered with the engine.
    """

    def __init__(self, name: str) -> None:
        self._name = name

    @property
    def name(self) -> str:
        """Get the concept name."""
        return self._name

    def __getattr__(self, operation: str) -> Operation:
        if operation.startswith("__"):
            raise AttributeError(operation)
        return Operation(self._name, operation)

    def __repr__(self) -> str:
        return f"Concept({self._name!r})"


class ConceptRegistry:
    """Mapping from operation references to concept methods."""

    def __init__(self) -> None:
        self._operations: dict[Operation, OperationSpec] = {}
        self._concepts: dict[str, object] = {}

    def register(self, name: str, concept: object) -> list[Operation]:
        """Register a concept instance under a name.

        Args:
            name: Concept name used in routes and synchronizations.
            concept: Instance whose @action/@query methods are exposed.

        Returns:
            Operations registered for this concept.

        Raises:
            ValueError: If the name is taken or the concept exposes nothing.
        """
        if name in self._concepts:
            raise ValueError(f"Concept {name!r} already registered")

        registered: list[Operation] = []
        for attr_name, member in inspect.getmembers(type(concept), callable):
            if getattr(member, _KIND_ATTR, None) is None:
                continue
            operation = Operation(name, attr_name)
            self._operations[operation] = OperationSpec(operation, getattr(concept, attr_name))
            registered.append(operation)

        if not registered:
            raise ValueError(f"Concept {name!r} exposes no actions or queries")

        self._concepts[name] = concept
        logger.debug("Registered concept %s with %d operations", name, len(registered))
        return registered

    def __contains__(self, operation: object) -> bool:
        return operation in self._operations

    def concept(self, name: str) -> object:
        """Get a registered concept instance.

        Raises:
            KeyError: If no concept has that name.
        """
        return self._concepts[name]

    def concepts(self) -> list[str]:
        """Get the registered concept names."""
        return list(self._concepts)

    def operations(self) -> list[Operation]:
        """Get every registered operation, ordered by concept then name."""
        return sorted(self._operations, key=lambda op: (op.concept, op.name))

    def resolve(self, operation: Operation) -> OperationSpec:
        """Resolve an operation reference.

        Raises:
            UnknownOperationError: If the operation is not registered.
        """
        spec = self._operations.get(operation)
        if spec is None:
            raise UnknownOperationError(f"Unknown operation {operation}")
        return spec

    async def call(self, operation: Operation, args: Mapping[str, Any]) -> Any:
        """Call an operation.

        Coroutine operations are awaited on the event loop. Plain functions
        run in a worker thread so that blocking concept code (database
        access, for instance) never stalls other causal chains.
        """
        fn = self.resolve(operation).fn
        if inspect.iscoroutinefunction(fn):
            return await fn(**args)
        result = await asyncio.to_thread(fn, **args)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def run_query(self, operation: Operation, args: Mapping[str, Any]) -> list[Mapping[str, Any]]:
        """Run a query and check that it returned a list of rows.

        Raises:
            QueryContractError: If the operation is not a query or returned
                something other than a list of mappings.
        """
        if operation.kind is not InvocationKind.QUERY:
            raise QueryContractError(f"{operation} is an action, not a query")
        rows = await self.call(operation, args)
        if not isinstance(rows, list) or not all(isinstance(row, Mapping) for row in rows):
            raise QueryContractError(
                f"Query {operation} must return a list of mappings, got {type(rows).__name__}"
            )
        return rows
