import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import structlog
from pydantic import ValidationError

from redraft import __version__
from redraft.config import IntakeSettings, RedraftSettings
from redraft.intake import SuggestionIntake, parse_batch
from redraft.locator import TextLocator
from redraft.manager import SuggestionManager
from redraft.models import EditBatch, IntakeResult, LocateFailure, LocateRequest
from redraft.surfaces.base import EditingSurface
from redraft.surfaces.docx import DocxSurface
from redraft.surfaces.memory import InMemorySurface


def _configure_logging(verbose: bool):
    # stdout carries command output; logs always go to stderr
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if verbose else logging.WARNING),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def _fail(message: str):
    print(f"Error: {message}", file=sys.stderr)
    sys.exit(1)


def _load_settings(args: argparse.Namespace) -> RedraftSettings:
    try:
        settings = RedraftSettings.from_env()
        max_changes = getattr(args, "max_changes", None)
        if max_changes is not None:
            settings.intake = IntakeSettings(max_changes_per_batch=max_changes)
        return settings
    except ValidationError as e:
        _fail(f"Invalid REDRAFT_* settings: {e}")


def _read_text(path: Path) -> str:
    if not path.exists():
        _fail(f"File not found: {path}")
    if path.suffix.lower() == ".docx":
        return DocxSurface.from_path(path).get_plain_text()
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _load_batch(path: Path) -> EditBatch:
    if not path.exists():
        _fail(f"Batch file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            return parse_batch(f.read())
    except (ValidationError, ValueError) as e:
        _fail(f"Could not parse edit batch: {e}")


def _build_pipeline(surface: EditingSurface, settings: RedraftSettings) -> SuggestionIntake:
    manager = SuggestionManager(
        surface,
        locator=TextLocator(settings.locator),
        settings=settings.suggestions,
    )
    return SuggestionIntake(manager, settings.intake)


def _report(result: IntakeResult):
    if result.reasoning:
        print(f"Reasoning: {result.reasoning}", file=sys.stderr)
    for suggestion in result.created:
        replacement = suggestion.replacement_text
        print(f"[~] '{suggestion.original_text}' -> '{replacement}' ({suggestion.id})", file=sys.stderr)
    for error in result.errors:
        print(f"[!] {error.kind.value if error.kind else 'ERROR'}: {error.error} ('{error.target or ''}')", file=sys.stderr)
    if result.discarded:
        print(f"⚠️  {len(result.discarded)} change(s) discarded by the per-batch limit.", file=sys.stderr)


def _accept_all(intake: SuggestionIntake) -> int:
    manager = intake.manager
    failed = 0
    # Newest first, so older spans are not shifted before they are accepted
    for suggestion in reversed(manager.list_active()):
        outcome = manager.accept_suggestion(suggestion.id)
        if not outcome.ok:
            print(f"[!] Could not accept {suggestion.id}: {outcome.error}", file=sys.stderr)
            failed += 1
    return failed


def handle_locate(args):
    snapshot = _read_text(args.snapshot)
    settings = _load_settings(args)

    try:
        request = LocateRequest(target_text=args.target, context_before=args.before, context_after=args.after)
    except ValidationError:
        _fail("TARGET must not be empty")

    located = TextLocator(settings.locator).locate(snapshot, request)
    if isinstance(located, LocateFailure):
        _fail(located.reason)

    output = {
        "start": located.span.start,
        "end": located.span.end,
        "strategy": located.strategy.value,
        "score": round(located.score, 4),
    }
    print(json.dumps(output))


def handle_markup(args):
    """Handler for the 'markup' subcommand."""
    # 1. Read the source document as plain text
    text = _read_text(args.input)
    batch = _load_batch(args.batch)
    settings = _load_settings(args)

    if not batch.changes:
        print("Warning: No changes found in batch file.", file=sys.stderr)

    # 2. Overlay suggestions on an in-memory copy
    surface = InMemorySurface(text)
    intake = _build_pipeline(surface, settings)
    result = intake.submit(batch)
    _report(result)

    failed = len(result.errors)
    if args.accept:
        failed += _accept_all(intake)
        output = surface.get_plain_text()
    else:
        output = surface.render_critic_markup()

    # 3. Determine output path
    output_path = args.output
    if not output_path:
        output_path = args.input.with_suffix(".md")
        if args.input.suffix.lower() == ".md":
            # Avoid overwriting source if it's already .md
            output_path = args.input.with_name(f"{args.input.stem}_suggested.md")

    with open(output_path, "w", encoding="utf-8") as f:
        f.write(output)

    print(f"✅ Saved to {output_path}", file=sys.stderr)
    print(f"Stats: {len(result.created)} created, {len(result.errors)} failed, {len(result.discarded)} discarded.", file=sys.stderr)
    if failed > 0:
        sys.exit(1)


def handle_apply(args):
    if args.original.suffix.lower() != ".docx":
        _fail(f"Not a .docx file: {args.original}")
    if not args.original.exists():
        _fail(f"File not found: {args.original}")

    batch = _load_batch(args.batch)
    settings = _load_settings(args)

    surface = DocxSurface.from_path(args.original)
    intake = _build_pipeline(surface, settings)
    print(f"Applying {len(batch.changes)} change(s)...", file=sys.stderr)
    result = intake.submit(batch)
    _report(result)

    failed = len(result.errors)
    if args.accept:
        failed += _accept_all(intake)

    output_path: Optional[Path] = args.output
    if not output_path:
        if args.original.stem.endswith("_suggested"):
            output_path = args.original
        else:
            output_path = args.original.with_name(f"{args.original.stem}_suggested.docx")

    surface.save(output_path)

    print(f"✅ Saved to {output_path}", file=sys.stderr)
    print(f"Stats: {len(result.created)} created, {len(result.errors)} failed, {len(result.discarded)} discarded.", file=sys.stderr)
    if failed > 0:
        sys.exit(1)


def main(argv=None):
    parser = argparse.ArgumentParser(prog="redraft", description="Redraft: inline AI suggestions for documents")
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", action="store_true", help="Log locator and lifecycle details to stderr")
    subparsers = parser.add_subparsers(dest="command", required=True, help="Subcommands")

    p_locate = subparsers.add_parser("locate", help="Find where a fragment lives in a document")
    p_locate.add_argument("snapshot", type=Path, help="Text, Markdown or DOCX file to search")
    p_locate.add_argument("target", type=str, help="Fragment to locate")
    p_locate.add_argument("--before", type=str, default=None, help="Text expected right before the fragment")
    p_locate.add_argument("--after", type=str, default=None, help="Text expected right after the fragment")
    p_locate.set_defaults(func=handle_locate)

    p_markup = subparsers.add_parser(
        "markup",
        help="Overlay an edit batch on a document and output CriticMarkup",
    )
    p_markup.add_argument("input", type=Path, help="Input text, Markdown or DOCX file")
    p_markup.add_argument("batch", type=Path, help="JSON edit batch ({reasoning, changes} or a list of changes)")
    p_markup.add_argument("-o", "--output", type=Path, help="Output path (default: input.md)")
    p_markup.add_argument("--accept", action="store_true", help="Accept every suggestion and write the resulting text")
    p_markup.add_argument("--max-changes", type=int, default=None, help="Changes applied per batch (default: 1)")
    p_markup.set_defaults(func=handle_markup)

    p_apply = subparsers.add_parser("apply", help="Overlay an edit batch on a DOCX as strike-through and highlight")
    p_apply.add_argument("original", type=Path, help="Original DOCX")
    p_apply.add_argument("batch", type=Path, help="JSON edit batch")
    p_apply.add_argument("-o", "--output", type=Path, help="Output DOCX path (default: <stem>_suggested.docx)")
    p_apply.add_argument("--accept", action="store_true", help="Accept every suggestion before saving")
    p_apply.add_argument("--max-changes", type=int, default=None, help="Changes applied per batch (default: 1)")
    p_apply.set_defaults(func=handle_apply)

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
