"""
Finds where an AI-proposed fragment lives in the current document text.

The AI only saw a plain-text snapshot that may be stale or reformatted, so
the locator runs a cascade of strategies from exact to fuzzy and returns the
first hit. Earlier stages are strictly more precise and always win, even if a
later stage would also match.
"""

from typing import List, Optional, Tuple

import structlog

from redraft.config import LocatorSettings
from redraft.models import LocatedSpan, LocateFailure, LocateRequest, LocateResult, LocateStrategy, Span
from redraft.similarity import similarity

logger = structlog.get_logger(__name__)


def collapse_whitespace(text: str) -> Tuple[str, List[int]]:
    """
    Collapses whitespace runs to a single space and trims both ends.
    Returns (normalized_text, positions) where positions[i] is the offset in
    `text` of normalized character i.
    """
    chars: List[str] = []
    positions: List[int] = []
    pending_space: Optional[int] = None

    for pos, char in enumerate(text):
        if char.isspace():
            if pending_space is None:
                pending_space = pos
            continue
        # Leading whitespace is dropped; trailing whitespace never gets flushed
        if pending_space is not None and chars:
            chars.append(" ")
            positions.append(pending_space)
        pending_space = None
        chars.append(char)
        positions.append(pos)

    return "".join(chars), positions


class TextLocator:
    def __init__(self, settings: Optional[LocatorSettings] = None):
        self.settings = settings or LocatorSettings()
        self._ignored = frozenset(self.settings.punctuation)

    def locate(self, snapshot: str, request: LocateRequest) -> LocateResult:
        target = request.target_text

        if not snapshot:
            logger.warning("Locate failed: document is empty.")
            return LocateFailure(request=request, reason="Document is empty")

        if request.has_context:
            located = self._find_with_context(snapshot, request)
            if located:
                return located

        # 3. Direct substring
        idx = snapshot.find(target)
        if idx != -1:
            return self._hit(request, LocateStrategy.EXACT, idx, idx + len(target))

        # 4. Whitespace-normalized substring
        span = self._find_whitespace_normalized(snapshot, target)
        if span:
            return self._hit(request, LocateStrategy.WHITESPACE, *span)

        # 5. Punctuation-insensitive substring
        span = self._find_punctuation_insensitive(snapshot, target)
        if span:
            return self._hit(request, LocateStrategy.PUNCTUATION, *span)

        # 6. Fuzzy sliding window
        fuzzy = self._find_fuzzy(snapshot, target)
        if fuzzy:
            start, end, score = fuzzy
            return self._hit(request, LocateStrategy.FUZZY, start, end, score)

        logger.warning(f"Locate failed: '{target[:50]}' not found by any strategy.")
        return LocateFailure(request=request)

    def _hit(self, request: LocateRequest, strategy: LocateStrategy, start: int, end: int, score: float = 1.0):
        logger.debug(f"Located target at [{start}:{end}] via {strategy.value} (score={score:.3f})")
        return LocatedSpan(span=Span(start=start, end=end), request=request, strategy=strategy, score=score)

    def _find_with_context(self, snapshot: str, request: LocateRequest) -> Optional[LocatedSpan]:
        target = request.target_text
        before = request.context_before or ""
        after = request.context_after or ""

        # 1. Full pattern: before + target + after
        idx = snapshot.find(before + target + after)
        if idx != -1:
            start = idx + len(before)
            return self._hit(request, LocateStrategy.CONTEXT_EXACT, start, start + len(target))

        # 2a. Anchor on the preceding context
        if before:
            idx = snapshot.find(before)
            if idx != -1:
                start = idx + len(before)
                actual = snapshot[start : start + len(target)]
                if self._matches_loosely(actual, target):
                    return self._hit(request, LocateStrategy.CONTEXT_BEFORE, start, start + len(actual))

        # 2b. Anchor on the following context
        if after:
            idx = snapshot.find(after)
            if idx != -1:
                start = idx - len(target)
                if start >= 0:
                    actual = snapshot[start:idx]
                    if self._matches_loosely(actual, target):
                        return self._hit(request, LocateStrategy.CONTEXT_AFTER, start, idx)

        logger.debug("Context-based location failed, falling back to target-only strategies.")
        return None

    @staticmethod
    def _matches_loosely(actual: str, target: str) -> bool:
        return actual == target or actual.strip() == target.strip()

    def _find_whitespace_normalized(self, snapshot: str, target: str) -> Optional[Tuple[int, int]]:
        norm_target, _ = collapse_whitespace(target)
        if not norm_target:
            return None

        norm_doc, positions = collapse_whitespace(snapshot)
        idx = norm_doc.find(norm_target)
        if idx == -1:
            return None

        # The normalized target is trimmed, so its first and last chars map to real characters
        start = positions[idx]
        end = positions[idx + len(norm_target) - 1] + 1
        return start, end

    def _is_ignored(self, char: str) -> bool:
        return char in self._ignored or char.isspace()

    def _strip_punctuation(self, text: str) -> str:
        return "".join(c for c in text if not self._is_ignored(c))

    def _find_punctuation_insensitive(self, snapshot: str, target: str) -> Optional[Tuple[int, int]]:
        stripped_target = self._strip_punctuation(target)
        if not stripped_target:
            return None

        idx = self._strip_punctuation(snapshot).find(stripped_target)
        if idx == -1:
            return None

        # Walk the original counting only kept characters
        kept = 0
        start = -1
        for pos, char in enumerate(snapshot):
            if self._is_ignored(char):
                continue
            if kept == idx:
                start = pos
            kept += 1
            if kept == idx + len(stripped_target):
                return start, pos + 1
        return None

    def _find_fuzzy(self, snapshot: str, target: str) -> Optional[Tuple[int, int, float]]:
        """
        Sliding window of len(target). A coarse pass samples every `stride`
        positions; a weak best candidate is then refined position by position
        within one window length on either side.
        The coarse pass keeps the leftmost of equal scores; refining only
        moves on a strictly better score, so it never trades the coarse
        candidate for an equal one further left.
        """
        window = len(target)
        last_start = len(snapshot) - window
        if last_start < 0:
            return None

        threshold = self.settings.fuzzy_threshold
        stride = max(1, window // self.settings.stride_divisor)

        best_start = -1
        best_score = 0.0
        for i in range(0, last_start + 1, stride):
            score = similarity(snapshot[i : i + window], target)
            if score >= threshold and (best_start == -1 or score > best_score):
                best_start, best_score = i, score
                if score == 1.0:
                    break

        if best_start == -1:
            return None

        if best_score < self.settings.refine_below:
            lo = max(0, best_start - window)
            hi = min(last_start, best_start + window)
            for i in range(lo, hi + 1):
                score = similarity(snapshot[i : i + window], target)
                if score > best_score:
                    best_start, best_score = i, score

        return best_start, best_start + window, best_score


def locate(snapshot: str, request: LocateRequest, settings: Optional[LocatorSettings] = None) -> LocateResult:
    return TextLocator(settings).locate(snapshot, request)
