"""
Exceptions raised inside redraft.

Surfaces and the store raise these; SuggestionManager converts them into
result models at its public boundary so callers only ever see typed results.
"""

from typing import Optional


class RedraftError(Exception):
    """Base class for all redraft errors."""


class OutOfRangeError(RedraftError):
    """A span or insertion point lies beyond the current document text."""

    def __init__(self, start: int, end: int, length: int):
        self.start = start
        self.end = end
        self.length = length
        super().__init__(f"Range [{start}:{end}] exceeds document length {length}")


class SurfaceError(RedraftError):
    """The editing surface could not carry out an operation."""


class InvalidStateTransition(RedraftError):
    def __init__(self, suggestion_id: str, status: Optional[str] = None, action: str = "update"):
        self.suggestion_id = suggestion_id
        self.status = status
        self.action = action
        if status is None:
            message = f"Cannot {action} suggestion '{suggestion_id}': no such active suggestion"
        else:
            message = f"Cannot {action} suggestion '{suggestion_id}': status is {status}"
        super().__init__(message)
