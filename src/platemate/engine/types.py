"""Shared types for the synchronization engine.

This module provides:
- EngineError and its subclasses: Exception classes
- InvocationKind: Action or query
- Operation: A (concept, operation) reference
- Invocation: One recorded call with input, output and causal parent
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

# Output key carrying a concept-level business failure
FAILURE_KEY = "error"

# Prefix distinguishing queries from actions
QUERY_PREFIX = "_"


class EngineError(Exception):
    """Base exception for engine errors."""


class UnknownOperationError(EngineError):
    """A synchronization or caller named an operation nobody registered."""


class DuplicateSyncError(EngineError):
    """Two synchronizations were registered under the same name."""


class BindingConflictError(EngineError):
    """A variable was rebound to a different value."""


class OperationContractError(EngineError):
    """An operation returned a value of the wrong shape."""


class QueryContractError(OperationContractError):
    """A query returned something other than a list of row mappings."""


class InvocationStateError(EngineError):
    """An invocation output was attached twice."""


class CascadeLimitError(EngineError):
    """A cascade went deeper than the configured maximum depth.

    Attributes:
        target: Operation whose dispatch crossed the limit.
        depth: Depth the dispatch would have had.
        root: Causal root of the cascade.
        max_depth: The configured limit.
    """

    def __init__(self, target: Operation, depth: int, root: int, max_depth: int) -> None:
        self.target = target
        self.depth = depth
        self.root = root
        self.max_depth = max_depth
        super().__init__(
            f"Cascade depth {depth} exceeds limit {max_depth} at {target} (root {root})"
        )


class InvocationKind(str, Enum):
    """Kind of an invocation."""

    ACTION = "action"
    QUERY = "query"


@dataclass(frozen=True)
class Operation:
    """Reference to a named operation of a concept.

    Attributes:
        concept: Name the concept was registered under.
        name: Operation name; queries start with an underscore.
    """

    concept: str
    name: str

    @property
    def kind(self) -> InvocationKind:
        """Get whether this operation is an action or a query."""
        if self.name.startswith(QUERY_PREFIX):
            return InvocationKind.QUERY
        return InvocationKind.ACTION

    def __str__(self) -> str:
        return f"{self.concept}.{self.name}"


def freeze(values: Mapping[str, Any]) -> Mapping[str, Any]:
    """Return a read-only copy of a mapping."""
    return MappingProxyType(dict(values))


@dataclass(eq=False)
class Invocation:
    """One call to a concept action or query.

    Created pending by the action log, then completed exactly once.

    Attributes:
        id: Monotonic identifier assigned by the log.
        target: Operation that was called.
        input: Arguments, fixed at dispatch.
        parent: Id of the invocation whose synchronization produced this one.
        root: Id of the causal root (own id for roots).
        depth: Number of ancestors.
        created_at: Monotonic timestamp of the append.
    """

    id: int
    target: Operation
    input: Mapping[str, Any]
    parent: int | None = None
    root: int = 0
    depth: int = 0
    created_at: float = field(default_factory=time.monotonic)
    _output: Mapping[str, Any] | None = field(default=None, repr=False)

    @property
    def kind(self) -> InvocationKind:
        """Get the invocation kind."""
        return self.target.kind

    @property
    def output(self) -> Mapping[str, Any] | None:
        """Get the output, None while pending."""
        return self._output

    @property
    def completed(self) -> bool:
        """Check whether the output has been attached."""
        return self._output is not None

    @property
    def failed(self) -> bool:
        """Check whether the output is a tagged failure."""
        return self._output is not None and FAILURE_KEY in self._output

    def complete(self, output: Mapping[str, Any]) -> None:
        """Attach the output.

        Raises:
            InvocationStateError: If the output was already attached.
        """
        if self._output is not None:
            raise InvocationStateError(f"Invocation {self.id} ({self.target}) already completed")
        self._output = freeze(output)
