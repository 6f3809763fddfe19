"""
Suggestion lifecycle: PENDING -> ACCEPTED | REJECTED.

A pending suggestion is an overlay on the editing surface:

    [original, struck][separator][replacement, highlighted]
    ^ original_span.start        ^ separator_pos + 1        ^ cursor

Accepting collapses the overlay to the bare replacement; rejecting removes
the separator and replacement and un-strikes the original. Nothing is
destructive until the user decides.

Failures come back as CreateResult / OperationResult; exceptions never escape
the public methods and the store stays consistent with the surface.
"""

import uuid
from typing import List, Optional

import structlog
from pydantic import ValidationError

from redraft.config import SuggestionSettings
from redraft.errors import InvalidStateTransition, OutOfRangeError
from redraft.locator import TextLocator
from redraft.models import (
    CreateResult,
    ErrorKind,
    LocateFailure,
    LocateRequest,
    LocateResult,
    MarkKind,
    OperationResult,
    Span,
    SuggestedChange,
    SuggestionStatus,
)
from redraft.similarity import describe_difference
from redraft.store import SuggestionStore
from redraft.surfaces.base import EditingSurface, Mark

logger = structlog.get_logger(__name__)


class SuggestionManager:
    def __init__(
        self,
        surface: EditingSurface,
        store: Optional[SuggestionStore] = None,
        locator: Optional[TextLocator] = None,
        settings: Optional[SuggestionSettings] = None,
    ):
        self.surface = surface
        self.store = store if store is not None else SuggestionStore()
        self.locator = locator or TextLocator()
        self.settings = settings or SuggestionSettings()

    def _new_id(self) -> str:
        return f"{self.settings.id_prefix}-{uuid.uuid4().hex[:12]}"

    def _highlight(self, suggestion: SuggestedChange) -> Mark:
        return Mark(
            kind=MarkKind.HIGHLIGHT,
            suggestion_id=suggestion.id,
            color=self.settings.highlight_color,
            description=suggestion.description,
        )

    # --- Creation ---

    def locate(self, request: LocateRequest) -> LocateResult:
        return self.locator.locate(self.surface.get_plain_text(), request)

    def create_suggestion(
        self,
        target_text: str,
        replacement: str,
        description: Optional[str] = None,
        context_before: Optional[str] = None,
        context_after: Optional[str] = None,
        streaming: bool = False,
    ) -> CreateResult:
        try:
            request = LocateRequest(
                target_text=target_text,
                context_before=context_before,
                context_after=context_after,
            )
        except ValidationError:
            logger.warning("Rejected suggestion request: target text is empty.")
            return CreateResult(error="Target text must not be empty", kind=ErrorKind.INVALID_REQUEST, target=target_text)

        return self.create(self.locate(request), replacement, description, streaming)

    def create(
        self,
        located: LocateResult,
        replacement: str = "",
        description: Optional[str] = None,
        streaming: bool = False,
    ) -> CreateResult:
        target = located.request.target_text

        if isinstance(located, LocateFailure):
            logger.warning(f"No suggestion created: {located.reason} ('{target[:50]}')")
            return CreateResult(error=located.reason, kind=ErrorKind.LOCATE_FAILURE, target=target)

        # Re-read: the surface may have changed since the snapshot used for locating
        text = self.surface.get_plain_text()
        span = located.span
        if not span.fits(len(text)):
            logger.warning(f"Located span [{span.start}:{span.end}] exceeds document length {len(text)}")
            return CreateResult(
                error=f"Span [{span.start}:{span.end}] exceeds document length {len(text)}",
                kind=ErrorKind.OUT_OF_RANGE,
                target=target,
            )

        span = self._narrow_to_target(text, span, target)
        original_text = span.slice(text)
        if original_text != target:
            logger.warning(
                f"{ErrorKind.MISMATCH_AFTER_LOCATE.value}: located text differs from target "
                f"({located.strategy.value}, score={located.score:.2f}): {describe_difference(target, original_text)}"
            )

        suggestion = SuggestedChange(
            id=self._new_id(),
            original_span=span,
            original_text=original_text,
            replacement_text="" if streaming else replacement,
            description=description,
            streaming=streaming,
        )

        try:
            self._apply_overlay(suggestion)
        except Exception as e:
            logger.error(f"Failed to annotate suggestion {suggestion.id}: {e}", exc_info=True)
            return CreateResult(error=f"Failed to annotate document: {e}", kind=ErrorKind.SURFACE_ERROR, target=target)

        self.store.add(suggestion)
        logger.info(
            f"Created suggestion {suggestion.id} at [{span.start}:{span.end}] "
            f"via {located.strategy.value}{' (streaming)' if streaming else ''}"
        )
        return CreateResult(suggestion=suggestion, target=target)

    def _narrow_to_target(self, text: str, span: Span, target: str) -> Span:
        """
        Upstream context can bleed extra characters into a match. If the live
        text at the span properly contains the target, shrink to that sub-range.
        """
        matched = span.slice(text)
        if matched == target or target not in matched:
            return span
        offset = matched.index(target)
        narrowed = Span(start=span.start + offset, end=span.start + offset + len(target))
        logger.debug(f"Narrowed span [{span.start}:{span.end}] -> [{narrowed.start}:{narrowed.end}]")
        return narrowed

    def _apply_overlay(self, suggestion: SuggestedChange) -> None:
        span = suggestion.original_span
        separator = self.settings.separator
        replacement_pos = span.end + len(separator)
        steps = []

        try:
            self.surface.apply_mark(span, MarkKind.STRIKE, {"suggestion_id": suggestion.id})
            steps.append("strike")
            self.surface.insert_text_at(span.end, separator)
            steps.append("separator")
            if suggestion.replacement_text:
                self.surface.insert_text_at(
                    replacement_pos, suggestion.replacement_text, [self._highlight(suggestion)]
                )
                steps.append("replacement")
        except Exception:
            self._rollback_overlay(suggestion, steps)
            raise

        suggestion._cursor = replacement_pos + len(suggestion.replacement_text)

    def _rollback_overlay(self, suggestion: SuggestedChange, steps: List[str]) -> None:
        span = suggestion.original_span
        end = span.end
        if "separator" in steps:
            end += len(self.settings.separator)
        if "replacement" in steps:
            end += len(suggestion.replacement_text)
        try:
            if end > span.end:
                self.surface.delete_range(Span(start=span.end, end=end))
            self.surface.remove_mark(suggestion.id)
        except Exception as e:
            logger.error(f"Rollback of suggestion {suggestion.id} failed: {e}")

    # --- Streaming ---

    def append_streamed_char(self, suggestion_id: str, char: str) -> OperationResult:
        """
        Appends one streamed character to a pending suggestion's replacement.
        Characters land in call order; the manager never reorders them.
        """
        try:
            suggestion = self.store.require_pending(suggestion_id, action="append to")
        except InvalidStateTransition as e:
            return self._invalid_transition(e)

        if not char:
            return OperationResult.failure(suggestion_id, ErrorKind.INVALID_REQUEST, "Nothing to append")

        cursor = suggestion._cursor
        length = len(self.surface.get_plain_text())
        if cursor > length:
            return self._out_of_range(suggestion_id, cursor, cursor, length)

        try:
            self.surface.insert_text_at(cursor, char, [self._highlight(suggestion)])
        except OutOfRangeError as e:
            return self._out_of_range(suggestion_id, e.start, e.end, e.length)
        except Exception as e:
            return self._surface_error(suggestion_id, "append to", e)

        suggestion._cursor = cursor + len(char)
        suggestion.replacement_text += char
        return OperationResult(suggestion_id=suggestion_id)

    def stream_text(self, suggestion_id: str, text: str) -> OperationResult:
        """Streams `text` one character at a time, stopping at the first failure."""
        result = OperationResult(suggestion_id=suggestion_id)
        for char in text:
            result = self.append_streamed_char(suggestion_id, char)
            if not result.ok:
                break
        return result

    # --- Decisions ---

    def accept_suggestion(self, suggestion_id: str) -> OperationResult:
        try:
            suggestion = self.store.require_pending(suggestion_id, action="accept")
        except InvalidStateTransition as e:
            return self._invalid_transition(e)

        combined = Span(start=suggestion.original_span.start, end=suggestion._cursor)
        length = len(self.surface.get_plain_text())
        if not combined.fits(length):
            return self._out_of_range(suggestion_id, combined.start, combined.end, length)

        try:
            self.surface.replace_range(combined, suggestion.replacement_text)
        except Exception as e:
            return self._surface_error(suggestion_id, "accept", e)

        return self._finalize(suggestion_id, SuggestionStatus.ACCEPTED, "accept")

    def reject_suggestion(self, suggestion_id: str) -> OperationResult:
        try:
            suggestion = self.store.require_pending(suggestion_id, action="reject")
        except InvalidStateTransition as e:
            return self._invalid_transition(e)

        added = Span(start=suggestion.separator_pos, end=suggestion._cursor)
        length = len(self.surface.get_plain_text())
        if not added.fits(length):
            return self._out_of_range(suggestion_id, added.start, added.end, length)

        # Delete before unmarking: a failed delete leaves the overlay whole
        try:
            self.surface.delete_range(added)
        except Exception as e:
            return self._surface_error(suggestion_id, "reject", e)

        return self._finalize(suggestion_id, SuggestionStatus.REJECTED, "reject")

    def _finalize(self, suggestion_id: str, status: SuggestionStatus, action: str) -> OperationResult:
        """
        Second half of accept/reject, after the text is already committed.
        The suggestion leaves the store even if its marks cannot be removed.
        """
        try:
            self.surface.remove_mark(suggestion_id)
        except Exception as e:
            self.store.transition(suggestion_id, status)
            return self._surface_error(suggestion_id, f"unmark {action}ed", e)

        self.store.transition(suggestion_id, status)
        logger.info(f"{status.value.capitalize()} suggestion {suggestion_id}")
        return OperationResult(suggestion_id=suggestion_id)

    def clear_suggestions(self) -> None:
        """
        Rejects every active suggestion, newest first so older offsets stay valid.
        A suggestion that cannot be rejected is unmarked and dropped anyway; the
        store is always empty afterwards.
        """
        for suggestion in reversed(self.store.active()):
            result = self.reject_suggestion(suggestion.id)
            if result.ok or suggestion.id not in self.store:
                continue
            logger.warning(f"Could not reject suggestion {suggestion.id} while clearing, dropping it: {result.error}")
            try:
                self.surface.remove_mark(suggestion.id)
            except Exception as e:
                logger.error(f"Failed to unmark suggestion {suggestion.id}: {e}")
            self.store.remove(suggestion.id)

    def list_active(self) -> List[SuggestedChange]:
        """Copies of the pending suggestions, in creation order. Mutating them does not affect the store."""
        return [s.model_copy() for s in self.store.active()]

    def get(self, suggestion_id: str) -> Optional[SuggestedChange]:
        return self.store.get(suggestion_id)

    # --- Error results ---

    def _invalid_transition(self, error: InvalidStateTransition) -> OperationResult:
        logger.warning(str(error))
        return OperationResult.failure(error.suggestion_id, ErrorKind.INVALID_STATE_TRANSITION, str(error))

    def _out_of_range(self, suggestion_id: str, start: int, end: int, length: int) -> OperationResult:
        error = OutOfRangeError(start, end, length)
        logger.warning(f"Suggestion {suggestion_id}: {error}")
        return OperationResult.failure(suggestion_id, ErrorKind.OUT_OF_RANGE, str(error))

    def _surface_error(self, suggestion_id: str, action: str, error: Exception) -> OperationResult:
        logger.error(f"Failed to {action} suggestion {suggestion_id}: {error}", exc_info=True)
        kind = ErrorKind.OUT_OF_RANGE if isinstance(error, OutOfRangeError) else ErrorKind.SURFACE_ERROR
        return OperationResult.failure(suggestion_id, kind, f"Failed to {action} suggestion: {error}")
