"""
Tests for redraft.surfaces.docx — suggestions as strike-through and highlight in Word runs.

Run: python3 test_docx_surface.py
From: python/
"""

import sys
from io import BytesIO

sys.path.insert(0, '.')

from docx import Document
from docx.enum.text import WD_COLOR_INDEX

from redraft.errors import OutOfRangeError, SurfaceError
from redraft.manager import SuggestionManager
from redraft.models import MarkKind, Span
from redraft.surfaces.base import EditingSurface, Mark
from redraft.surfaces.docx import DocxSurface


# ---------------------------------------------------------------------------
# Helpers — build minimal .docx documents in memory
# ---------------------------------------------------------------------------

def _doc_to_stream(doc):
    buf = BytesIO()
    doc.save(buf)
    buf.seek(0)
    return buf


def _surface(*paragraphs):
    doc = Document()
    for text in paragraphs:
        doc.add_paragraph(text)
    return DocxSurface(_doc_to_stream(doc))


def _runs(surface, index=0):
    return surface.doc.paragraphs[index].runs


def _run_texts(surface, index=0):
    return [r.text for r in _runs(surface, index)]


def _any_overlay_formatting(surface):
    for paragraph in surface.doc.paragraphs:
        for run in paragraph.runs:
            if run.font.strike or run.font.highlight_color is not None:
                return True
    return False


# ---------------------------------------------------------------------------
# Plain text and offsets
# ---------------------------------------------------------------------------

def test_satisfies_protocol():
    assert isinstance(_surface("x"), EditingSurface)


def test_plain_text_joins_paragraphs():
    surface = _surface("The quick fox jumps.", "Second line")
    assert surface.get_plain_text() == "The quick fox jumps.\nSecond line"


def test_split_runs_are_coalesced():
    doc = Document()
    p = doc.add_paragraph()
    p.add_run("Con")
    p.add_run("tract")
    surface = DocxSurface(_doc_to_stream(doc))
    assert _run_texts(surface) == ["Contract"]


def test_table_cells_are_read():
    doc = Document()
    doc.add_paragraph("Intro")
    table = doc.add_table(rows=1, cols=2)
    table.cell(0, 0).text = "A"
    table.cell(0, 1).text = "B"
    surface = DocxSurface(_doc_to_stream(doc))
    assert surface.get_plain_text() == "Intro\nA\nB"


# ---------------------------------------------------------------------------
# Surface operations
# ---------------------------------------------------------------------------

def test_apply_mark_splits_runs():
    surface = _surface("The quick fox jumps.")
    surface.apply_mark(Span(start=4, end=13), MarkKind.STRIKE, {"suggestion_id": "s1"})
    assert _run_texts(surface) == ["The ", "quick fox", " jumps."]
    runs = _runs(surface)
    assert runs[1].font.strike is True
    assert not runs[0].font.strike
    assert surface.get_plain_text() == "The quick fox jumps."


def test_remove_mark_restores_formatting():
    surface = _surface("The quick fox jumps.")
    surface.apply_mark(Span(start=4, end=13), MarkKind.STRIKE, {"suggestion_id": "s1"})
    surface.remove_mark("s1")
    assert not _any_overlay_formatting(surface)


def test_insert_with_highlight():
    surface = _surface("ab")
    surface.insert_text_at(1, "XY", [Mark(kind=MarkKind.HIGHLIGHT, suggestion_id="s1")])
    assert surface.get_plain_text() == "aXYb"
    runs = _runs(surface)
    assert [r.text for r in runs] == ["a", "XY", "b"]
    assert runs[1].font.highlight_color == WD_COLOR_INDEX.BRIGHT_GREEN
    assert runs[0].font.highlight_color is None


def test_delete_across_paragraphs_merges():
    surface = _surface("The quick fox jumps.", "Second line")
    surface.delete_range(Span(start=19, end=21))
    assert surface.get_plain_text() == "The quick fox jumpsSecond line"
    assert len(surface.doc.paragraphs) == 1


def test_delete_across_table_cells_refused():
    doc = Document()
    doc.add_paragraph("Intro")
    table = doc.add_table(rows=1, cols=2)
    table.cell(0, 0).text = "A"
    table.cell(0, 1).text = "B"
    surface = DocxSurface(_doc_to_stream(doc))
    try:
        surface.delete_range(Span(start=6, end=9))
        assert False, "expected SurfaceError"
    except SurfaceError:
        pass
    assert surface.get_plain_text() == "Intro\nA\nB"


def test_out_of_range():
    surface = _surface("abc")
    try:
        surface.insert_text_at(10, "x")
        assert False, "expected OutOfRangeError"
    except OutOfRangeError as e:
        assert e.length == 3


# ---------------------------------------------------------------------------
# Suggestion lifecycle on a Word document
# ---------------------------------------------------------------------------

def test_suggestion_overlay_in_runs():
    surface = _surface("The quick fox jumps.", "Second line")
    manager = SuggestionManager(surface)
    result = manager.create_suggestion("quick fox", "slow fox")
    assert result.ok

    assert surface.get_plain_text() == "The quick fox slow fox jumps.\nSecond line"
    runs = _runs(surface)
    assert [r.text for r in runs] == ["The ", "quick fox", " ", "slow fox", " jumps."]
    assert runs[1].font.strike is True
    assert not runs[2].font.strike
    assert runs[2].font.highlight_color is None
    assert runs[3].font.highlight_color == WD_COLOR_INDEX.BRIGHT_GREEN
    assert not runs[3].font.strike


def test_accept_on_docx():
    surface = _surface("The quick fox jumps.", "Second line")
    manager = SuggestionManager(surface)
    suggestion = manager.create_suggestion("quick fox", "slow fox").suggestion

    assert manager.accept_suggestion(suggestion.id).ok
    assert surface.get_plain_text() == "The slow fox jumps.\nSecond line"
    assert not _any_overlay_formatting(surface)


def test_reject_on_docx():
    surface = _surface("The quick fox jumps.", "Second line")
    manager = SuggestionManager(surface)
    suggestion = manager.create_suggestion("quick fox", "slow fox").suggestion

    assert manager.reject_suggestion(suggestion.id).ok
    assert surface.get_plain_text() == "The quick fox jumps.\nSecond line"
    assert not _any_overlay_formatting(surface)


def test_streaming_grows_one_run():
    surface = _surface("The quick fox jumps.")
    manager = SuggestionManager(surface)
    suggestion = manager.create_suggestion("quick fox", "", streaming=True).suggestion
    assert manager.stream_text(suggestion.id, "slow").ok

    assert surface.get_plain_text() == "The quick fox slow jumps."
    assert _run_texts(surface) == ["The ", "quick fox", " ", "slow", " jumps."]


def test_existing_strike_survives_reject():
    doc = Document()
    p = doc.add_paragraph("Keep ")
    struck = p.add_run("old")
    struck.font.strike = True
    p.add_run(" text")
    surface = DocxSurface(_doc_to_stream(doc))
    manager = SuggestionManager(surface)

    suggestion = manager.create_suggestion("old", "new").suggestion
    manager.reject_suggestion(suggestion.id)
    runs = _runs(surface)
    assert [r.text for r in runs] == ["Keep ", "old", " text"]
    assert runs[1].font.strike is True


def test_saved_document_round_trip():
    surface = _surface("The quick fox jumps.")
    manager = SuggestionManager(surface)
    manager.create_suggestion("quick fox", "slow fox")

    reopened = Document(surface.save_to_stream())
    runs = reopened.paragraphs[0].runs
    assert reopened.paragraphs[0].text == "The quick fox slow fox jumps."
    assert any(r.font.strike for r in runs)
    assert any(r.font.highlight_color == WD_COLOR_INDEX.BRIGHT_GREEN for r in runs)


# ---------------------------------------------------------------------------

if __name__ == '__main__':
    tests = [
        test_satisfies_protocol,
        test_plain_text_joins_paragraphs,
        test_split_runs_are_coalesced,
        test_table_cells_are_read,
        test_apply_mark_splits_runs,
        test_remove_mark_restores_formatting,
        test_insert_with_highlight,
        test_delete_across_paragraphs_merges,
        test_delete_across_table_cells_refused,
        test_out_of_range,
        test_suggestion_overlay_in_runs,
        test_accept_on_docx,
        test_reject_on_docx,
        test_streaming_grows_one_run,
        test_existing_strike_survives_reject,
        test_saved_document_round_trip,
    ]

    passed = 0
    failed = 0
    for t in tests:
        try:
            t()
            passed += 1
        except Exception as e:
            print(f"FAIL: {t.__name__} — {e}")
            failed += 1

    print(f"\n{'=' * 50}")
    print(f"Results: {passed} passed, {failed} failed out of {len(tests)} tests")
    if failed > 0:
        sys.exit(1)
    else:
        print("All tests passed!")
