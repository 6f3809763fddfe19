"""
The capability interface redraft needs from an editing surface.

All offsets are plain-text offsets into get_plain_text(). A surface backed by
a structured document (e.g. Word runs) translates them into its own positions;
callers never see those.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Sequence, runtime_checkable

from redraft.errors import OutOfRangeError
from redraft.models import MarkKind, Span


@dataclass(frozen=True)
class Mark:
    kind: MarkKind
    suggestion_id: Optional[str] = None
    color: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_metadata(cls, kind: MarkKind, metadata: Optional[Dict[str, Any]] = None) -> "Mark":
        metadata = metadata or {}
        return cls(
            kind=kind,
            suggestion_id=metadata.get("suggestion_id"),
            color=metadata.get("color"),
            description=metadata.get("description"),
        )


@runtime_checkable
class EditingSurface(Protocol):
    def get_plain_text(self) -> str:
        """Fresh snapshot of the document text."""
        ...

    def apply_mark(self, span: Span, kind: MarkKind, metadata: Optional[Dict[str, Any]] = None) -> None: ...

    def remove_mark(self, suggestion_id: str) -> None:
        """Removes every mark tagged with suggestion_id, anywhere in the document."""
        ...

    def insert_text_at(self, pos: int, text: str, marks: Optional[Sequence[Mark]] = None) -> None: ...

    def delete_range(self, span: Span) -> None: ...

    def replace_range(self, span: Span, text: str) -> None: ...


def check_span(span: Span, length: int) -> None:
    if not span.fits(length):
        raise OutOfRangeError(span.start, span.end, length)


def check_position(pos: int, length: int) -> None:
    if pos < 0 or pos > length:
        raise OutOfRangeError(pos, pos, length)
