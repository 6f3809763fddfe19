import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import structlog
from mcp.server.fastmcp import FastMCP

from redraft.config import RedraftSettings
from redraft.intake import SuggestionIntake
from redraft.locator import TextLocator
from redraft.manager import SuggestionManager
from redraft.models import EditBatch, OperationResult
from redraft.surfaces.docx import DocxSurface

# --- LOGGING CONFIGURATION ---
# MCP communicates over stdio.
# CRITICAL: All logs must go to stderr. Any print to stdout will break the JSON-RPC protocol.
logging.basicConfig(stream=sys.stderr, level=logging.INFO, force=True)

structlog.configure(
    processors=[
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
)

logger = structlog.get_logger(__name__)

mcp = FastMCP("Redraft Suggestion Service")


@dataclass
class ReviewSession:
    """One open document with its pending suggestions."""

    path: Path
    surface: DocxSurface
    manager: SuggestionManager
    intake: SuggestionIntake


_sessions: Dict[str, ReviewSession] = {}


def _open_session(file_path: str) -> ReviewSession:
    p = Path(file_path).resolve()
    key = str(p)
    session = _sessions.get(key)
    if session is not None:
        return session

    if not p.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    settings = RedraftSettings.from_env()
    surface = DocxSurface.from_path(p)
    manager = SuggestionManager(surface, locator=TextLocator(settings.locator), settings=settings.suggestions)
    session = ReviewSession(path=p, surface=surface, manager=manager, intake=SuggestionIntake(manager, settings.intake))
    _sessions[key] = session
    logger.info(f"Opened review session for {key}")
    return session


def _describe(result: OperationResult, verb: str) -> str:
    if result.ok:
        return f"{verb} suggestion {result.suggestion_id}."
    return f"Error ({result.kind.value}): {result.error}"


@mcp.tool()
def read_document(file_path: str) -> str:
    """
    Returns the plain text of a DOCX file as the suggestion tools see it.
    Paragraphs are separated by newlines. If suggestions are pending, each one
    appears as the original text, a space, then the proposed replacement.

    Args:
        file_path: Absolute path to the DOCX file.
    """
    try:
        return _open_session(file_path).surface.get_plain_text()
    except Exception as e:
        return f"Error reading file: {str(e)}"


@mcp.tool()
def propose_changes(file_path: str, batch: EditBatch, streaming: bool = False) -> str:
    """
    Shows proposed edits inline: the original text is struck through and the
    replacement is inserted right after it, highlighted. Nothing is final until
    accepted or rejected.

    Matching Strategy:
    - Give `targetText` exactly as it reads in the document, plus a few words of
      `contextBefore` / `contextAfter` to pin down repeated phrases.
    - Whitespace, punctuation and small typos are tolerated.

    Only the first change of a batch is applied unless the server is configured
    otherwise (REDRAFT_MAX_CHANGES_PER_BATCH); the rest are reported as discarded.

    Args:
        file_path: Absolute path to the DOCX file.
        batch: {reasoning, changes: [{contextBefore, targetText, contextAfter, replacement, description}]}.
        streaming: If True, replacements start empty and are filled with stream_replacement.
    """
    try:
        result = _open_session(file_path).intake.submit(batch, streaming=streaming)

        lines = []
        for suggestion in result.created:
            lines.append(f"Created {suggestion.id}: '{suggestion.original_text}' -> '{suggestion.replacement_text}'")
        for error in result.errors:
            lines.append(f"Failed ({error.kind.value if error.kind else 'ERROR'}): {error.error} ('{error.target or ''}')")
        if result.discarded:
            lines.append(f"Discarded {len(result.discarded)} change(s) beyond the per-batch limit.")
        if not lines:
            lines.append("No changes proposed.")
        return "\n".join(lines)
    except Exception as e:
        return f"Error proposing changes: {str(e)}"


@mcp.tool()
def stream_replacement(file_path: str, suggestion_id: str, text: str) -> str:
    """
    Appends text to the replacement of a pending streaming suggestion.

    Args:
        file_path: Absolute path to the DOCX file.
        suggestion_id: Id returned by propose_changes.
        text: The next piece of the replacement.
    """
    try:
        return _describe(_open_session(file_path).intake.stream(suggestion_id, text), "Extended")
    except Exception as e:
        return f"Error streaming replacement: {str(e)}"


@mcp.tool()
def list_suggestions(file_path: str) -> str:
    """
    Lists pending suggestions for a document as JSON: id, original text,
    replacement, description and character offsets.
    """
    try:
        suggestions = _open_session(file_path).manager.list_active()
        return json.dumps(
            [
                {
                    "id": s.id,
                    "original": s.original_text,
                    "replacement": s.replacement_text,
                    "description": s.description,
                    "start": s.original_span.start,
                    "end": s.original_span.end,
                }
                for s in suggestions
            ],
            indent=2,
        )
    except Exception as e:
        return f"Error listing suggestions: {str(e)}"


@mcp.tool()
def accept_suggestion(file_path: str, suggestion_id: str) -> str:
    """
    Accepts a pending suggestion: the struck original is replaced by the
    replacement text and all suggestion formatting is removed.
    """
    try:
        return _describe(_open_session(file_path).manager.accept_suggestion(suggestion_id), "Accepted")
    except Exception as e:
        return f"Error accepting suggestion: {str(e)}"


@mcp.tool()
def reject_suggestion(file_path: str, suggestion_id: str) -> str:
    """
    Rejects a pending suggestion: the replacement is removed and the original
    text is restored exactly as it was.
    """
    try:
        return _describe(_open_session(file_path).manager.reject_suggestion(suggestion_id), "Rejected")
    except Exception as e:
        return f"Error rejecting suggestion: {str(e)}"


@mcp.tool()
def save_document(file_path: str, output_path: Optional[str] = None) -> str:
    """
    Saves the document with its current suggestions (struck and highlighted)
    and decisions applied.

    Args:
        file_path: Absolute path of the document being reviewed.
        output_path: Optional. Defaults to <name>_suggested.docx next to the source
                     (or the source itself if it already ends in _suggested).
    """
    try:
        session = _open_session(file_path)

        if not output_path:
            p = session.path
            if p.stem.endswith("_suggested"):
                output_path = str(p)
            else:
                output_path = str(p.parent / f"{p.stem}_suggested{p.suffix}")

        session.surface.save(output_path)
        pending = len(session.manager.list_active())
        return f"Saved to: {output_path} ({pending} suggestion(s) still pending)"
    except Exception as e:
        return f"Error saving document: {str(e)}"


def main():
    mcp.run()


if __name__ == "__main__":
    main()
