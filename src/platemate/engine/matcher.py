"""Pattern matching of invocations against when clauses.

A pattern is a projection: fields it does not name are ignored, but every
field it names must be present in the matched values.

Success and failure outputs are disjoint match targets. An output pattern
matches a failure output only if it names the failure field, and a success
output only if it does not; an empty output pattern matches success only.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, assert_never

from platemate.engine.patterns import BoundRef, Literal, Pattern, UnboundRef, classify
from platemate.engine.types import FAILURE_KEY

if TYPE_CHECKING:
    from platemate.engine.frames import Frame
    from platemate.engine.sync import WhenPattern
    from platemate.engine.types import Invocation


def match_fields(pattern: Pattern, values: Mapping[str, Any], frame: Frame) -> Frame | None:
    """Match concrete values against a pattern.

    Args:
        pattern: Field name to literal or variable.
        values: Concrete field values (invocation input, output or row).
        frame: Frame holding the current bindings.

    Returns:
        Refined frame, or None on mismatch.
    """
    for key, value in pattern.items():
        if key not in values:
            return None
        actual = values[key]
        field_ = classify(value, frame)
        if isinstance(field_, Literal):
            if actual != field_.value:
                return None
        elif isinstance(field_, BoundRef):
            if actual != field_.value:
                return None
        elif isinstance(field_, UnboundRef):
            frame = frame.bind(field_.var, actual)
        else:
            assert_never(field_)
    return frame


def output_shape_matches(pattern: Pattern, output: Mapping[str, Any]) -> bool:
    """Check that a pattern targets the same outcome variant as an output."""
    return (FAILURE_KEY in pattern) == (FAILURE_KEY in output)


def match_invocation(invocation: Invocation, when: WhenPattern, frame: Frame) -> Frame | None:
    """Match one invocation against a when pattern.

    Args:
        invocation: Completed invocation from the action log.
        when: Target with input and output patterns.
        frame: Frame holding the bindings made so far.

    Returns:
        Refined frame with the invocation id traced, or None on mismatch.
    """
    if invocation.target != when.target:
        return None
    output = invocation.output
    if output is None:
        return None
    if not output_shape_matches(when.output, output):
        return None

    refined = match_fields(when.input, invocation.input, frame)
    if refined is None:
        return None
    refined = match_fields(when.output, output, refined)
    if refined is None:
        return None
    return refined.traced(invocation.id)
