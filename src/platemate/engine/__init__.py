"""Engine module - Synchronization rules over concept invocations."""

from platemate.engine.concepts import Concept, ConceptRegistry, action, query
from platemate.engine.engine import SyncEngine
from platemate.engine.frames import Frame, Frames
from platemate.engine.log import ActionLog
from platemate.engine.patterns import Var
from platemate.engine.sync import Sync, ThenPattern, WhenPattern, actions, sync
from platemate.engine.types import (
    FAILURE_KEY,
    BindingConflictError,
    CascadeLimitError,
    DuplicateSyncError,
    EngineError,
    Invocation,
    InvocationKind,
    InvocationStateError,
    Operation,
    OperationContractError,
    QueryContractError,
    UnknownOperationError,
)

__all__ = [
    # Concepts
    "Concept",
    "ConceptRegistry",
    "action",
    "query",
    # Engine
    "ActionLog",
    "SyncEngine",
    # Frames
    "Frame",
    "Frames",
    "Var",
    # Rules
    "Sync",
    "ThenPattern",
    "WhenPattern",
    "actions",
    "sync",
    # Types
    "FAILURE_KEY",
    "Invocation",
    "InvocationKind",
    "Operation",
    # Errors
    "BindingConflictError",
    "CascadeLimitError",
    "DuplicateSyncError",
    "EngineError",
    "InvocationStateError",
    "OperationContractError",
    "QueryContractError",
    "UnknownOperationError",
]
