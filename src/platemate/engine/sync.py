"""Declarative synchronization rules.

A synchronization relates concept invocations:

- when: invocations that must all be found in one causal chain
- where: optional step refining the resulting frames (queries, filters)
- then: actions dispatched once per surviving frame

Rules are written as functions of their logical variables. The @sync
decorator creates one Var per parameter and calls the function once:

    @sync
    def create_user_response(request, user):
        return Sync(
            when=[
                (Requesting.request, {"path": "/UserManagement/create_user"}, {"request": request}),
                (UserManagement.create_user, {}, {"user": user}),
            ],
            then=[(Requesting.respond, {"request": request, "user": user})],
        )
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

from platemate.engine.frames import Frames
from platemate.engine.patterns import Pattern, Var, variables_in
from platemate.engine.types import Operation

WhereClause = Callable[[Frames], Frames | Awaitable[Frames]]


@dataclass(frozen=True)
class WhenPattern:
    """One (target, input-pattern, output-pattern) triple of a when clause."""

    target: Operation
    input: Pattern = field(default_factory=dict)
    output: Pattern = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "input", MappingProxyType(dict(self.input)))
        object.__setattr__(self, "output", MappingProxyType(dict(self.output)))


@dataclass(frozen=True)
class ThenPattern:
    """One (target, input-pattern) pair of a then clause."""

    target: Operation
    input: Pattern = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "input", MappingProxyType(dict(self.input)))

    @property
    def variables(self) -> set[str]:
        """Get the names of the variables this dispatch needs."""
        return variables_in(self.input)


def _when(clause: WhenPattern | tuple[Any, ...]) -> WhenPattern:
    if isinstance(clause, WhenPattern):
        return clause
    return WhenPattern(*clause)


def _then(clause: ThenPattern | tuple[Any, ...]) -> ThenPattern:
    if isinstance(clause, ThenPattern):
        return clause
    return ThenPattern(*clause)


@dataclass(frozen=True)
class Sync:
    """A synchronization rule.

    Attributes:
        when: Patterns that must all match within one causal chain.
        then: Actions to dispatch once per surviving frame.
        where: Optional frame refinement, sync or async.
        name: Rule name, set from the function name by @sync.
        variables: Names of the declared logical variables.
    """

    when: tuple[WhenPattern, ...]
    then: tuple[ThenPattern, ...]
    where: WhereClause | None = None
    name: str = ""
    variables: tuple[str, ...] = ()

    def __init__(
        self,
        when: Iterable[WhenPattern | tuple[Any, ...]],
        then: Iterable[ThenPattern | tuple[Any, ...]],
        where: WhereClause | None = None,
        name: str = "",
        variables: Iterable[str] = (),
    ) -> None:
        object.__setattr__(self, "when", tuple(_when(clause) for clause in when))
        object.__setattr__(self, "then", tuple(_then(clause) for clause in then))
        object.__setattr__(self, "where", where)
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "variables", tuple(variables))
        if not self.when:
            raise ValueError("A synchronization needs at least one when pattern")
        if not self.then:
            raise ValueError("A synchronization needs at least one then action")

    @property
    def targets(self) -> set[Operation]:
        """Get every operation the rule refers to."""
        return {clause.target for clause in self.when} | {clause.target for clause in self.then}

    def describe(self) -> Mapping[str, Any]:
        """Summarize the rule for listings."""
        return {
            "name": self.name,
            "when": [str(clause.target) for clause in self.when],
            "then": [str(clause.target) for clause in self.then],
            "has_where": self.where is not None,
        }


def sync(fn: Callable[..., Sync]) -> Sync:
    """Build a synchronization from a function of its logical variables.

    Raises:
        TypeError: If the function does not return a Sync.
    """
    names = tuple(inspect.signature(fn).parameters)
    declared = fn(*(Var(name) for name in names))
    if not isinstance(declared, Sync):
        raise TypeError(f"{fn.__name__} must return a Sync, got {type(declared).__name__}")
    return replace(declared, name=declared.name or fn.__name__, variables=names)


def actions(*clauses: ThenPattern | tuple[Any, ...]) -> tuple[ThenPattern, ...]:
    """Build a then clause from (target, input) pairs.

    Usage:
        then=actions(
            (UserManagement.create_user, {"username": username, "email": email}),
        )
    """
    return tuple(_then(clause) for clause in clauses)
