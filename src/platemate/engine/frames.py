"""Frames: variable-binding environments and their pipeline.

This module provides:
- Frame: Immutable mapping from variable name to value
- Frames: Ordered collection of frames with query/filter/collect

Every Frames operation returns a new Frames; no frame is ever mutated,
so a rule step may keep a reference to an earlier frame set safely.

Usage in a where clause:
    async def where(frames: Frames) -> Frames:
        frames = await frames.query(Users._get_user, {"user": user}, {"username": name})
        return frames.filter(lambda f: f[name] != "admin")
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from typing import TYPE_CHECKING, Any, overload

from platemate.engine.matcher import match_fields
from platemate.engine.patterns import Pattern, Var, resolve
from platemate.engine.types import BindingConflictError, Operation

if TYPE_CHECKING:
    from platemate.engine.concepts import ConceptRegistry

logger = logging.getLogger(__name__)


def _name(key: Var | str) -> str:
    return key.name if isinstance(key, Var) else key


class Frame(Mapping[str, Any]):
    """A single variable-binding environment.

    Keys are variable names; Var objects are accepted wherever a name is.
    The trace records the ids of the invocations matched by the rule's
    when clause, in clause order.
    """

    __slots__ = ("_bindings", "_trace")

    def __init__(
        self,
        bindings: Mapping[Var | str, Any] | None = None,
        trace: Iterable[int] = (),
    ) -> None:
        self._bindings: dict[str, Any] = {
            _name(key): value for key, value in (bindings or {}).items()
        }
        self._trace: tuple[int, ...] = tuple(trace)

    def __getitem__(self, key: Var | str) -> Any:
        return self._bindings[_name(key)]

    def __contains__(self, key: object) -> bool:
        if isinstance(key, Var | str):
            return _name(key) in self._bindings
        return False

    def __iter__(self) -> Iterator[str]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Frame):
            return self._bindings == other._bindings and self._trace == other._trace
        if isinstance(other, Mapping):
            return self._bindings == dict(other.items())
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Frame({self._bindings!r}, trace={self._trace!r})"

    @property
    def trace(self) -> tuple[int, ...]:
        """Get the ids of the invocations matched so far."""
        return self._trace

    def bind(self, var: Var | str, value: Any) -> Frame:
        """Return a new frame with one more binding.

        Rebinding a variable to an equal value is a no-op.

        Raises:
            BindingConflictError: If the variable is bound to a different value.
        """
        name = _name(var)
        if name in self._bindings:
            if self._bindings[name] != value:
                raise BindingConflictError(
                    f"Variable {name!r} already bound to {self._bindings[name]!r}"
                )
            return self
        bindings = dict(self._bindings)
        bindings[name] = value
        return Frame(bindings, self._trace)

    def traced(self, invocation_id: int) -> Frame:
        """Return a new frame with an invocation id appended to the trace."""
        return Frame(self._bindings, (*self._trace, invocation_id))


class Frames(Sequence[Frame]):
    """Ordered, immutable collection of frames.

    The registry is needed only by query() and absent(); frame sets handed
    to a where clause by the engine always carry one.
    """

    __slots__ = ("_frames", "_registry")

    def __init__(
        self,
        *frames: Frame | Mapping[Var | str, Any],
        registry: ConceptRegistry | None = None,
    ) -> None:
        self._frames: tuple[Frame, ...] = tuple(
            frame if isinstance(frame, Frame) else Frame(frame) for frame in frames
        )
        self._registry = registry

    @classmethod
    def of(
        cls,
        frames: Iterable[Frame | Mapping[Var | str, Any]],
        registry: ConceptRegistry | None = None,
    ) -> Frames:
        """Build a frame set from an iterable."""
        return cls(*frames, registry=registry)

    @overload
    def __getitem__(self, index: int) -> Frame: ...

    @overload
    def __getitem__(self, index: slice) -> Frames: ...

    def __getitem__(self, index: int | slice) -> Frame | Frames:
        if isinstance(index, slice):
            return self._derive(self._frames[index])
        return self._frames[index]

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[Frame]:
        return iter(self._frames)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Frames):
            return self._frames == other._frames
        if isinstance(other, Sequence):
            return list(self._frames) == list(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Frames({list(self._frames)!r})"

    @property
    def registry(self) -> ConceptRegistry | None:
        """Get the registry used to run queries."""
        return self._registry

    def _derive(self, frames: Iterable[Frame | Mapping[Var | str, Any]]) -> Frames:
        return Frames.of(frames, registry=self._registry)

    def _require_registry(self) -> ConceptRegistry:
        if self._registry is None:
            raise RuntimeError("Frames has no concept registry; queries are unavailable")
        return self._registry

    async def query(
        self,
        operation: Operation,
        input_pattern: Pattern,
        output_pattern: Pattern,
    ) -> Frames:
        """Expand each frame by the rows a query returns.

        For each frame the input pattern is resolved against its bindings
        and the query is run; every row whose fields match the output
        pattern yields one successor frame. Frames missing a referenced
        input variable, and frames whose query returns no rows, contribute
        nothing.

        Args:
            operation: Query to run.
            input_pattern: Arguments, with variables taken from each frame.
            output_pattern: Row fields to match or bind.

        Returns:
            Successor frames in frame order, then row order.
        """
        registry = self._require_registry()
        expanded: list[Frame] = []
        for frame in self._frames:
            args = resolve(input_pattern, frame)
            if args is None:
                logger.debug("Dropping frame for %s: unbound input", operation)
                continue
            rows = await registry.run_query(operation, args)
            for row in rows:
                refined = match_fields(output_pattern, row, frame)
                if refined is not None:
                    expanded.append(refined)
        return self._derive(expanded)

    async def absent(self, operation: Operation, input_pattern: Pattern) -> Frames:
        """Keep the frames for which a query returns no rows."""
        registry = self._require_registry()
        kept: list[Frame] = []
        for frame in self._frames:
            args = resolve(input_pattern, frame)
            if args is None:
                continue
            if not await registry.run_query(operation, args):
                kept.append(frame)
        return self._derive(kept)

    def filter(self, predicate: Callable[[Frame], bool]) -> Frames:
        """Keep the frames satisfying a predicate."""
        return self._derive(frame for frame in self._frames if predicate(frame))

    def map(self, fn: Callable[[Frame], Frame | Mapping[Var | str, Any]]) -> Frames:
        """Replace each frame by the result of a function."""
        return self._derive(fn(frame) for frame in self._frames)

    def collect(
        self,
        variables: Iterable[Var | str],
        as_var: Var | str,
        seed: Frame | Mapping[Var | str, Any] | None = None,
    ) -> Frames:
        """Fold frames into one frame per group of retained bindings.

        Frames are grouped by the values of every variable that is not
        collected. Each output frame keeps those values and binds as_var to
        the list of {name: value} rows of the collected variables, in the
        original frame order.

        Args:
            variables: Variables to collect.
            as_var: Variable receiving the collected rows.
            seed: Frame returned (with as_var bound to []) when there is
                nothing to collect. Without a seed, no input means no output.

        Returns:
            One frame per distinct combination of retained bindings.
        """
        collected = [_name(var) for var in variables]
        target = _name(as_var)

        if not self._frames:
            if seed is None:
                return self._derive(())
            seed_frame = seed if isinstance(seed, Frame) else Frame(seed)
            return self._derive((seed_frame.bind(target, []),))

        groups: list[tuple[dict[str, Any], tuple[int, ...], list[dict[str, Any]]]] = []
        for frame in self._frames:
            key = {name: value for name, value in frame.items() if name not in collected}
            row = {name: frame.get(name) for name in collected}
            for group_key, _, rows in groups:
                if group_key == key:
                    rows.append(row)
                    break
            else:
                groups.append((key, frame.trace, [row]))

        return self._derive(
            Frame(key, trace).bind(target, rows) for key, trace, rows in groups
        )
