"""Logical variables and pattern fields.

A pattern is a mapping from field name to either a literal value or a
logical variable (Var). Against a given frame each field is one of:

- Literal(value): must equal the field value
- BoundRef(var, value): variable already bound, must equal its binding
- UnboundRef(var): variable not yet bound, binds to the field value
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from platemate.engine.frames import Frame

Pattern = Mapping[str, Any]


@dataclass(frozen=True)
class Var:
    """A logical variable declared by a synchronization."""

    name: str

    def __repr__(self) -> str:
        return f"?{self.name}"


@dataclass(frozen=True)
class Literal:
    """Pattern field holding a constant."""

    value: Any


@dataclass(frozen=True)
class BoundRef:
    """Pattern field referencing a variable bound in the frame."""

    var: Var
    value: Any


@dataclass(frozen=True)
class UnboundRef:
    """Pattern field referencing a variable not yet bound in the frame."""

    var: Var


PatternField = Literal | BoundRef | UnboundRef


def classify(value: Any, frame: Frame) -> PatternField:
    """Classify one pattern field against a frame."""
    if isinstance(value, Var):
        if value.name in frame:
            return BoundRef(value, frame[value.name])
        return UnboundRef(value)
    return Literal(value)


def variables_in(pattern: Pattern) -> set[str]:
    """Get the names of the variables a pattern references."""
    return {value.name for value in pattern.values() if isinstance(value, Var)}


def resolve(pattern: Pattern, frame: Frame) -> dict[str, Any] | None:
    """Substitute a frame's bindings into a pattern.

    Args:
        pattern: Pattern to resolve.
        frame: Frame providing bindings.

    Returns:
        Concrete arguments, or None if a referenced variable is unbound.
    """
    resolved: dict[str, Any] = {}
    for key, value in pattern.items():
        field_ = classify(value, frame)
        if isinstance(field_, UnboundRef):
            return None
        resolved[key] = field_.value
    return resolved
