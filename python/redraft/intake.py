"""
Turns AI-backend edit batches into suggestions.

Batch narrowing policy: only the first IntakeSettings.max_changes_per_batch
changes (default 1) are applied. Pending suggestions do not renumber each
other's cached spans, so a second suggestion inserted near the first would
leave one of them pointing at the wrong characters. The remaining changes
are logged and returned as `discarded`.
"""

import json
from typing import Any, Mapping, Optional, Union

import structlog
from pydantic import ValidationError

from redraft.config import IntakeSettings
from redraft.manager import SuggestionManager
from redraft.models import CreateResult, EditBatch, ErrorKind, IntakeResult, OperationResult, ProposedChange

logger = structlog.get_logger(__name__)

BatchInput = Union[EditBatch, Mapping[str, Any], list, str, bytes]


def parse_batch(payload: BatchInput) -> EditBatch:
    """
    Accepts an EditBatch, a mapping, a bare list of changes, or their JSON text.
    Raises pydantic.ValidationError (or ValueError for bad JSON).
    """
    if isinstance(payload, EditBatch):
        return payload
    if isinstance(payload, (str, bytes)):
        payload = json.loads(payload)
    if isinstance(payload, list):
        payload = {"changes": payload}
    return EditBatch.model_validate(payload)


class SuggestionIntake:
    def __init__(self, manager: SuggestionManager, settings: Optional[IntakeSettings] = None):
        self.manager = manager
        self.settings = settings or IntakeSettings()

    def submit(self, payload: BatchInput, streaming: bool = False) -> IntakeResult:
        try:
            batch = parse_batch(payload)
        except (ValidationError, ValueError) as e:
            logger.warning(f"Rejected malformed edit batch: {e}")
            return IntakeResult(errors=[CreateResult(error=f"Invalid edit batch: {e}", kind=ErrorKind.INVALID_REQUEST)])

        limit = self.settings.max_changes_per_batch
        selected = batch.changes[:limit]
        discarded = batch.changes[limit:]

        for idx, change in enumerate(discarded, start=limit):
            logger.info(f"Discarding change {idx}: only {limit} change(s) per batch are applied ('{(change.resolved_target() or '')[:40]}')")

        result = IntakeResult(reasoning=batch.reasoning, discarded=list(discarded))
        for change in selected:
            outcome = self._apply_change(change, streaming)
            if outcome.ok:
                result.created.append(outcome.suggestion)
            else:
                result.errors.append(outcome)

        if not batch.changes:
            logger.info("Edit batch contained no changes.")
        return result

    def _apply_change(self, change: ProposedChange, streaming: bool) -> CreateResult:
        target = change.resolved_target()
        if not target:
            logger.warning("Skipping change: no target text.")
            return CreateResult(error="Change has no target text", kind=ErrorKind.INVALID_REQUEST)

        return self.manager.create_suggestion(
            target_text=target,
            replacement=change.replacement or "",
            description=change.description,
            context_before=change.context_before or None,
            context_after=change.context_after or None,
            streaming=streaming,
        )

    def stream(self, suggestion_id: str, text: str) -> OperationResult:
        return self.manager.stream_text(suggestion_id, text)
