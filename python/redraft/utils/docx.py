"""
Low-level helpers for walking and reshaping DOCX paragraphs and runs.
"""

from copy import deepcopy
from typing import Iterator, Union

import structlog
from docx.document import Document as DocumentObject
from docx.oxml.ns import qn
from docx.table import Table, _Cell
from docx.text.paragraph import Paragraph
from docx.text.run import Run

logger = structlog.get_logger(__name__)

# Run children whose content survives a text-only merge or split
_TEXT_TAGS = {
    qn("w:t"),
    qn("w:tab"),
    qn("w:br"),
    qn("w:cr"),
    qn("w:rPr"),
}


def iter_block_items(parent) -> Iterator[Union[Paragraph, Table]]:
    """
    Yields Paragraph or Table objects in document order.
    Supports Document and Cell containers.
    """
    if isinstance(parent, DocumentObject):
        parent_elm = parent.element.body
    elif isinstance(parent, _Cell):
        parent_elm = parent._tc
    elif hasattr(parent, "_element"):
        parent_elm = parent._element
    else:
        raise ValueError(f"Unsupported parent type for iteration: {type(parent)}")

    for child in parent_elm.iterchildren():
        if child.tag == qn("w:p"):
            yield Paragraph(child, parent)
        elif child.tag == qn("w:tbl"):
            yield Table(child, parent)


def iter_paragraphs(parent) -> Iterator[Paragraph]:
    """
    Body paragraphs in reading order, descending into table cells.
    Merged cells are visited once.
    """
    for item in iter_block_items(parent):
        if isinstance(item, Paragraph):
            yield item
        else:
            for row in item.rows:
                seen = set()
                for cell in row.cells:
                    if cell._tc in seen:
                        continue
                    seen.add(cell._tc)
                    yield from iter_paragraphs(cell)


def is_plain_text_run(run: Run) -> bool:
    """True if the run holds nothing but text-like content (no fields, drawings, comment refs)."""
    return all(child.tag in _TEXT_TAGS for child in run._r)


def _same_formatting(r1: Run, r2: Run) -> bool:
    rPr1 = r1._r.rPr
    rPr2 = r2._r.rPr
    return (rPr1.xml if rPr1 is not None else "") == (rPr2.xml if rPr2 is not None else "")


def coalesce_runs(paragraph: Paragraph) -> None:
    """
    Merges neighbouring runs that share formatting, so a word split into
    ["Con", "tract"] by editing history maps to a single run.
    """
    i = 0
    runs = paragraph.runs
    while i < len(runs) - 1:
        current, following = runs[i], runs[i + 1]
        if not (is_plain_text_run(current) and is_plain_text_run(following)) or not _same_formatting(
            current, following
        ):
            i += 1
            continue
        # Move content children so w:tab / w:br survive
        for child in list(following._r):
            if child.tag != qn("w:rPr"):
                current._r.append(child)
        paragraph._p.remove(following._r)
        runs = paragraph.runs


def normalize_docx(doc: DocumentObject) -> None:
    """
    Prepares a document for offset mapping: drops proofing markers and
    coalesces identically formatted runs.
    """
    proof_errs = doc.element.xpath("//w:proofErr")
    for proof_err in proof_errs:
        proof_err.getparent().remove(proof_err)
    if proof_errs:
        logger.debug(f"Removed {len(proof_errs)} proofing markers")

    for paragraph in iter_paragraphs(doc):
        coalesce_runs(paragraph)


def split_run(run: Run, index: int) -> Run:
    """
    Splits `run` at character `index`. The left part stays in `run`; the new
    right-hand run (same formatting) is inserted after it and returned.
    """
    text = run.text
    right_element = deepcopy(run._r)
    run.text = text[:index]
    right = Run(right_element, run._parent)
    right.text = text[index:]
    run._r.addnext(right_element)
    return right
