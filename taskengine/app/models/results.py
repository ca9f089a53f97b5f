"""Typed results and error kinds returned by engine operations."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from .patch import TaskPatch
from .task import Task


class ErrorKind(str, Enum):
    """Failure categories surfaced to callers."""
    UNAUTHORIZED = "unauthorized"
    INVALID_TRANSITION = "invalid_transition"
    NOT_FOUND = "not_found"
    SESSION_CONFLICT = "session_conflict"
    CYCLIC_DEPENDENCY = "cyclic_dependency"
    CONCURRENT_MODIFICATION = "concurrent_modification"


class EngineError(BaseModel):
    """A failed operation with a user-facing message."""
    kind: ErrorKind
    message: str


class MutationResult(BaseModel):
    """Result of a state machine or work session operation.

    On success ``patch`` holds the update to persist and ``task`` the
    patched copy of the input. On failure only ``error`` is set.
    """
    success: bool
    patch: Optional[TaskPatch] = None
    task: Optional[Task] = None
    error: Optional[EngineError] = None

    @classmethod
    def ok(cls, task: Task, patch: TaskPatch) -> "MutationResult":
        return cls(success=True, patch=patch, task=patch.apply(task))

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> "MutationResult":
        return cls(success=False, error=EngineError(kind=kind, message=message))
