from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator


class SuggestionStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class LocateStrategy(str, Enum):
    """Locator cascade stages, most precise first."""

    CONTEXT_EXACT = "CONTEXT_EXACT"
    CONTEXT_BEFORE = "CONTEXT_BEFORE"
    CONTEXT_AFTER = "CONTEXT_AFTER"
    EXACT = "EXACT"
    WHITESPACE = "WHITESPACE"
    PUNCTUATION = "PUNCTUATION"
    FUZZY = "FUZZY"


class MarkKind(str, Enum):
    STRIKE = "strike"
    HIGHLIGHT = "highlight"


class ErrorKind(str, Enum):
    LOCATE_FAILURE = "LOCATE_FAILURE"
    OUT_OF_RANGE = "OUT_OF_RANGE"
    MISMATCH_AFTER_LOCATE = "MISMATCH_AFTER_LOCATE"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    INVALID_REQUEST = "INVALID_REQUEST"
    SURFACE_ERROR = "SURFACE_ERROR"


class Span(BaseModel):
    """Half-open character range [start, end) into a plain-text snapshot."""

    model_config = ConfigDict(frozen=True)

    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)

    @model_validator(mode="after")
    def _check_order(self):
        if self.end < self.start:
            raise ValueError(f"Span end ({self.end}) precedes start ({self.start})")
        return self

    @property
    def length(self) -> int:
        return self.end - self.start

    def fits(self, length: int) -> bool:
        return self.end <= length

    def slice(self, text: str) -> str:
        return text[self.start : self.end]


class LocateRequest(BaseModel):
    """
    What the AI wants to change, as it saw it in its (possibly stale) snapshot.
    """

    target_text: str = Field(..., min_length=1, description="The fragment to locate.")
    context_before: Optional[str] = Field(None, description="Text the AI saw immediately before the target.")
    context_after: Optional[str] = Field(None, description="Text the AI saw immediately after the target.")

    @property
    def has_context(self) -> bool:
        return bool(self.context_before) or bool(self.context_after)


class LocatedSpan(BaseModel):
    span: Span
    request: LocateRequest
    strategy: LocateStrategy
    score: float = 1.0


class LocateFailure(BaseModel):
    request: LocateRequest
    reason: str = "Target text could not be located in the document"


LocateResult = Union[LocatedSpan, LocateFailure]


class SuggestedChange(BaseModel):
    """
    One proposed edit shown inline: struck original, separator, highlighted replacement.
    """

    id: str
    original_span: Span = Field(..., frozen=True)
    original_text: str = Field(..., frozen=True)
    replacement_text: str = ""
    description: Optional[str] = None
    status: SuggestionStatus = SuggestionStatus.PENDING
    streaming: bool = False

    # Document offset where the next streamed character goes. Owned by SuggestionManager.
    _cursor: int = PrivateAttr(default=0)

    @property
    def is_pending(self) -> bool:
        return self.status == SuggestionStatus.PENDING

    @property
    def separator_pos(self) -> int:
        return self.original_span.end


class ProposedChange(BaseModel):
    """
    One change as emitted by the AI backend. Field names follow the backend's
    camelCase JSON; snake_case is accepted too.
    """

    model_config = ConfigDict(populate_by_name=True)

    context_before: Optional[str] = Field(None, alias="contextBefore")
    target_text: Optional[str] = Field(None, alias="targetText")
    context_after: Optional[str] = Field(None, alias="contextAfter")
    replacement: Optional[str] = Field(None, description="Replacement text. May be empty in streaming mode.")
    description: Optional[str] = None

    # Older backends sent the fragment as 'target' without any context.
    target: Optional[str] = Field(None, description="Legacy name of target_text.")

    def resolved_target(self) -> Optional[str]:
        return self.target_text or self.target


class EditBatch(BaseModel):
    reasoning: str = ""
    changes: List[ProposedChange] = Field(default_factory=list)


class CreateResult(BaseModel):
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None
    target: Optional[str] = None
    suggestion: Optional[SuggestedChange] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.suggestion is not None


class OperationResult(BaseModel):
    suggestion_id: str
    ok: bool = True
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None

    @classmethod
    def failure(cls, suggestion_id: str, kind: ErrorKind, error: str) -> "OperationResult":
        return cls(suggestion_id=suggestion_id, ok=False, kind=kind, error=error)


class IntakeResult(BaseModel):
    reasoning: str = ""
    created: List[SuggestedChange] = Field(default_factory=list)
    errors: List[CreateResult] = Field(default_factory=list)
    discarded: List[ProposedChange] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors
