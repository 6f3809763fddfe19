"""
Plain-text editing surface with per-character marks.

Used by the CLI preview and by tests. The overlay can be rendered as
CriticMarkup:
- struck original: {--text--}
- highlighted replacement: {++text++}
- description: {>>comment<<}
"""

from typing import Any, Dict, FrozenSet, Iterator, List, Optional, Sequence, Tuple

import structlog

from redraft.models import MarkKind, Span
from redraft.surfaces.base import Mark, check_position, check_span

logger = structlog.get_logger(__name__)

_NO_MARKS: FrozenSet[Mark] = frozenset()


class InMemorySurface:
    def __init__(self, text: str = ""):
        self._text = text
        self._marks: List[FrozenSet[Mark]] = [_NO_MARKS] * len(text)

    def get_plain_text(self) -> str:
        return self._text

    def apply_mark(self, span: Span, kind: MarkKind, metadata: Optional[Dict[str, Any]] = None) -> None:
        check_span(span, len(self._text))
        mark = Mark.from_metadata(kind, metadata)
        for i in range(span.start, span.end):
            self._marks[i] = self._marks[i] | {mark}

    def remove_mark(self, suggestion_id: str) -> None:
        removed = 0
        for i, marks in enumerate(self._marks):
            kept = frozenset(m for m in marks if m.suggestion_id != suggestion_id)
            if len(kept) != len(marks):
                self._marks[i] = kept
                removed += 1
        logger.debug(f"Removed marks for {suggestion_id} from {removed} characters")

    def insert_text_at(self, pos: int, text: str, marks: Optional[Sequence[Mark]] = None) -> None:
        check_position(pos, len(self._text))
        if not text:
            return
        self._text = self._text[:pos] + text + self._text[pos:]
        self._marks[pos:pos] = [frozenset(marks or ())] * len(text)

    def delete_range(self, span: Span) -> None:
        check_span(span, len(self._text))
        self._text = self._text[: span.start] + self._text[span.end :]
        del self._marks[span.start : span.end]

    def replace_range(self, span: Span, text: str) -> None:
        check_span(span, len(self._text))
        self.delete_range(span)
        self.insert_text_at(span.start, text)

    # --- Inspection ---

    def marks_at(self, pos: int) -> FrozenSet[Mark]:
        return self._marks[pos]

    def has_marks(self, suggestion_id: Optional[str] = None) -> bool:
        for marks in self._marks:
            for mark in marks:
                if suggestion_id is None or mark.suggestion_id == suggestion_id:
                    return True
        return False

    def _segments(self) -> Iterator[Tuple[str, FrozenSet[Mark]]]:
        """Yields maximal runs of characters sharing the same mark set."""
        start = 0
        for i in range(1, len(self._text) + 1):
            if i == len(self._text) or self._marks[i] != self._marks[start]:
                yield self._text[start:i], self._marks[start]
                start = i

    def mark_ranges(self, kind: Optional[MarkKind] = None) -> List[Tuple[Span, Mark]]:
        ranges = []
        offset = 0
        for text, marks in self._segments():
            for mark in marks:
                if kind is None or mark.kind == kind:
                    ranges.append((Span(start=offset, end=offset + len(text)), mark))
            offset += len(text)
        return ranges

    def render_critic_markup(self) -> str:
        parts = []
        for text, marks in self._segments():
            kinds = {m.kind for m in marks}
            if MarkKind.STRIKE in kinds:
                parts.append(f"{{--{text}--}}")
            elif MarkKind.HIGHLIGHT in kinds:
                parts.append(f"{{++{text}++}}")
                comment = next((m.description for m in marks if m.description), None)
                if comment:
                    parts.append(f"{{>>{comment}<<}}")
            else:
                parts.append(text)
        return "".join(parts)
