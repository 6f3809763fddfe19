"""
Editing surface over a Word document (python-docx).

Plain text is the concatenation of run texts, paragraphs joined by a single
"\\n" (table cells are read row by row). Offsets into that text are mapped to
runs; runs are split at range boundaries so a mark or deletion touches
exactly the requested characters.

Marks become run formatting: STRIKE -> strike-through, HIGHLIGHT -> highlight
colour. Which runs carry which suggestion's marks is tracked in memory for
the lifetime of the surface; the formatting a run had before a mark is
restored when the mark is removed.

Only direct w:r children of paragraphs are mapped. Text inside hyperlinks,
fields or existing tracked changes is invisible to this surface.
"""

from copy import deepcopy
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import structlog
from docx import Document
from docx.document import Document as DocumentObject
from docx.enum.text import WD_COLOR_INDEX
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.text.paragraph import Paragraph
from docx.text.run import Run

from redraft.errors import SurfaceError
from redraft.models import MarkKind, Span
from redraft.surfaces.base import Mark, check_position, check_span
from redraft.utils.docx import is_plain_text_run, iter_paragraphs, normalize_docx, split_run

logger = structlog.get_logger(__name__)


@dataclass
class _RunSpan:
    start: int
    end: int
    run: Run
    p_element: Any


@dataclass
class _ParagraphSpan:
    start: int
    end: int
    paragraph: Paragraph


@dataclass
class _Tag:
    mark: Mark
    previous: Any


class DocxSurface:
    def __init__(
        self,
        doc_stream: Union[BytesIO, DocumentObject],
        highlight: WD_COLOR_INDEX = WD_COLOR_INDEX.BRIGHT_GREEN,
    ):
        if isinstance(doc_stream, DocumentObject):
            self.doc = doc_stream
        else:
            self.doc = Document(doc_stream)
        normalize_docx(self.doc)
        self.highlight = highlight
        self._tags: Dict[Any, List[_Tag]] = {}
        self._text = ""
        self._runs: List[_RunSpan] = []
        self._paragraphs: List[_ParagraphSpan] = []
        self._build_map()

    @classmethod
    def from_path(cls, path: Union[str, Path], **kwargs) -> "DocxSurface":
        with open(path, "rb") as f:
            return cls(BytesIO(f.read()), **kwargs)

    def save_to_stream(self) -> BytesIO:
        output = BytesIO()
        self.doc.save(output)
        output.seek(0)
        return output

    def save(self, path: Union[str, Path]) -> None:
        self.doc.save(str(path))

    # --- Offset map ---

    def _build_map(self) -> None:
        parts: List[str] = []
        self._runs = []
        self._paragraphs = []
        offset = 0

        for i, paragraph in enumerate(iter_paragraphs(self.doc)):
            if i > 0:
                parts.append("\n")
                offset += 1
            start = offset
            for run in paragraph.runs:
                text = run.text
                if not text:
                    continue
                self._runs.append(_RunSpan(offset, offset + len(text), run, paragraph._p))
                parts.append(text)
                offset += len(text)
            self._paragraphs.append(_ParagraphSpan(start, offset, paragraph))

        self._text = "".join(parts)

    def _paragraph_at(self, pos: int) -> _ParagraphSpan:
        for p in self._paragraphs:
            if p.start <= pos <= p.end:
                return p
        # A document without paragraphs still accepts text at offset 0
        paragraph = self.doc.add_paragraph()
        self._build_map()
        return self._paragraphs[-1] if self._paragraphs else _ParagraphSpan(0, 0, paragraph)

    def _split_at(self, pos: int) -> None:
        for span in self._runs:
            if span.start < pos < span.end:
                right = split_run(span.run, pos - span.start)
                tags = self._tags.get(span.run._r)
                if tags:
                    self._tags[right._r] = list(tags)
                self._build_map()
                return

    def _runs_in(self, span: Span) -> List[_RunSpan]:
        self._split_at(span.start)
        self._split_at(span.end)
        return [s for s in self._runs if s.start >= span.start and s.end <= span.end]

    # --- Surface capability ---

    def get_plain_text(self) -> str:
        return self._text

    def apply_mark(self, span: Span, kind: MarkKind, metadata: Optional[Dict[str, Any]] = None) -> None:
        check_span(span, len(self._text))
        mark = Mark.from_metadata(kind, metadata)
        for run_span in self._runs_in(span):
            self._set_mark(run_span.run, mark)

    def _set_mark(self, run: Run, mark: Mark) -> None:
        font = run.font
        if mark.kind == MarkKind.STRIKE:
            previous = font.strike
            font.strike = True
        else:
            previous = font.highlight_color
            font.highlight_color = self.highlight
        self._tags.setdefault(run._r, []).append(_Tag(mark, previous))

    def _marks_of(self, run: Run) -> List[Mark]:
        return [tag.mark for tag in self._tags.get(run._r, [])]

    def remove_mark(self, suggestion_id: str) -> None:
        for element, tags in list(self._tags.items()):
            font = Run(element, None).font
            kept = []
            for tag in reversed(tags):
                if tag.mark.suggestion_id != suggestion_id:
                    kept.append(tag)
                elif tag.mark.kind == MarkKind.STRIKE:
                    font.strike = tag.previous
                else:
                    font.highlight_color = tag.previous
            if kept:
                self._tags[element] = list(reversed(kept))
            else:
                del self._tags[element]

    def insert_text_at(self, pos: int, text: str, marks: Optional[Sequence[Mark]] = None) -> None:
        check_position(pos, len(self._text))
        self._insert(pos, text, marks)

    def _insert(self, pos: int, text: str, marks: Optional[Sequence[Mark]] = None, rPr=None) -> None:
        if not text:
            return
        self._split_at(pos)
        para = self._paragraph_at(pos)
        p_element = para.paragraph._p

        preceding = [s for s in self._runs if s.p_element is p_element and s.end == pos]
        following = [s for s in self._runs if s.p_element is p_element and s.start == pos]

        # Streaming appends one character at a time; grow the previous run instead of adding one per char
        if marks and preceding and self._marks_of(preceding[-1].run) == list(marks):
            run = preceding[-1].run
            if is_plain_text_run(run):
                run.text = run.text + text
                self._build_map()
                return

        if rPr is None:
            style_run = preceding[-1].run if preceding else (following[0].run if following else None)
            if style_run is not None:
                rPr = style_run._r.rPr

        new_r = OxmlElement("w:r")
        if rPr is not None:
            new_r.append(deepcopy(rPr))
        if preceding:
            preceding[-1].run._r.addnext(new_r)
        elif following:
            following[0].run._r.addprevious(new_r)
        else:
            p_element.append(new_r)

        run = Run(new_r, para.paragraph)
        # Neighbouring overlay formatting must not leak into inserted text
        run.font.strike = None
        run.font.highlight_color = None
        run.text = text
        for mark in marks or ():
            self._set_mark(run, mark)

        self._build_map()

    def delete_range(self, span: Span) -> None:
        check_span(span, len(self._text))
        if span.length == 0:
            return

        # Paragraph separators inside the range merge the paragraphs around them
        merges = []
        for i, p in enumerate(self._paragraphs[:-1]):
            if span.start <= p.end < span.end:
                following = self._paragraphs[i + 1].paragraph
                if following._p.getparent() is not p.paragraph._p.getparent():
                    raise SurfaceError(f"Cannot delete [{span.start}:{span.end}]: range crosses a table cell")
                merges.append((p.paragraph, following))

        for run_span in self._runs_in(span):
            self._tags.pop(run_span.run._r, None)
            run_span.p_element.remove(run_span.run._r)

        if merges:
            logger.debug(f"Merging {len(merges)} paragraph(s) deleted across [{span.start}:{span.end}]")
        for paragraph, following in reversed(merges):
            for child in list(following._p):
                if child.tag != qn("w:pPr"):
                    paragraph._p.append(child)
            following._p.getparent().remove(following._p)

        self._build_map()

    def replace_range(self, span: Span, text: str) -> None:
        check_span(span, len(self._text))
        runs = self._runs_in(span)
        rPr = deepcopy(runs[0].run._r.rPr) if runs and runs[0].run._r.rPr is not None else None
        self.delete_range(span)
        self._insert(span.start, text, rPr=rPr)
