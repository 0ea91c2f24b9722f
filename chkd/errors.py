"""Typed failures returned by the chkd engine.

Every recoverable failure is a ``ChkdError`` subclass carrying a machine
readable ``reason``, a human readable message and an optional one-line
hint. The engine raises them internally and converts them into a failed
``Outcome`` at the operation boundary, so callers branch on ``reason``
rather than parsing text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class FailureReason(str, Enum):
    NOT_FOUND = "not_found"
    ALREADY_COMPLETE = "already_complete"
    INCOMPLETE_CHILDREN = "incomplete_children"
    DEBOUNCED = "debounced"
    NO_ACTIVE_TASK = "no_active_task"
    INVALID_TRANSITION = "invalid_transition"
    INVALID_INPUT = "invalid_input"


class ChkdError(Exception):
    """Base class for recoverable engine failures."""

    reason: FailureReason = FailureReason.INVALID_INPUT

    def __init__(self, message: str, hint: Optional[str] = None, **details: Any):
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": False,
            "reason": self.reason.value,
            "error": self.message,
        }
        if self.hint:
            payload["hint"] = self.hint
        payload.update(self.details)
        return payload


class NotFound(ChkdError):
    reason = FailureReason.NOT_FOUND

    def __init__(self, query: str, hint: Optional[str] = None):
        super().__init__(
            f'No item matches "{query}"',
            hint or "Use an explicit id like SD.1, or check the title spelling",
            query=query,
        )


class AlreadyComplete(ChkdError):
    reason = FailureReason.ALREADY_COMPLETE

    def __init__(self, title: str):
        super().__init__(f'"{title}" is already done', title=title)


class IncompleteChildren(ChkdError):
    """Raised when a container is completed while sub-items remain open."""

    reason = FailureReason.INCOMPLETE_CHILDREN

    def __init__(self, title: str, titles: List[str]):
        super().__init__(
            f'Cannot complete "{title}": {len(titles)} sub-item(s) still open',
            "Complete sub-items first, or use done with force",
            title=title,
            incomplete=list(titles),
        )
        self.titles = list(titles)


class Debounced(ChkdError):
    """Raised when a tick follows ``working`` too closely."""

    reason = FailureReason.DEBOUNCED

    def __init__(self, title: str, remaining_seconds: int):
        super().__init__(
            f'Too fast: "{title}" was started moments ago. Wait {remaining_seconds}s',
            "Actually do the work before ticking it",
            title=title,
            remaining_seconds=remaining_seconds,
        )
        self.remaining_seconds = remaining_seconds


class NoActiveTask(ChkdError):
    reason = FailureReason.NO_ACTIVE_TASK

    def __init__(self, operation: str):
        super().__init__(
            f"Cannot {operation}: no task is active",
            "Start a task first",
            operation=operation,
        )


class InvalidTransition(ChkdError):
    reason = FailureReason.INVALID_TRANSITION

    def __init__(self, message: str, hint: Optional[str] = None, **details: Any):
        super().__init__(message, hint, **details)


class InvalidInput(ChkdError):
    reason = FailureReason.INVALID_INPUT


@dataclass(slots=True)
class Outcome:
    """Result of an engine operation: a payload or a typed failure."""

    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[ChkdError] = None

    @classmethod
    def ok(cls, **data: Any) -> "Outcome":
        return cls(success=True, data=data)

    @classmethod
    def failed(cls, error: ChkdError) -> "Outcome":
        return cls(success=False, data=error.to_dict(), error=error)

    @property
    def reason(self) -> Optional[FailureReason]:
        return self.error.reason if self.error else None

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        if self.error is not None:
            return self.error.to_dict()
        return {"success": True, **self.data}
