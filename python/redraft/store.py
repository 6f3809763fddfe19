from collections import OrderedDict
from typing import Dict, List, Optional

import structlog

from redraft.errors import InvalidStateTransition
from redraft.models import SuggestedChange, SuggestionStatus

logger = structlog.get_logger(__name__)


class SuggestionStore:
    """
    Active (PENDING) suggestions keyed by id, in creation order.

    The store is an explicit object handed to SuggestionManager rather than
    module state, so several documents can each own one.
    """

    def __init__(self):
        self._items: Dict[str, SuggestedChange] = OrderedDict()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, suggestion_id: object) -> bool:
        return suggestion_id in self._items

    def add(self, suggestion: SuggestedChange) -> None:
        if suggestion.id in self._items:
            raise ValueError(f"Duplicate suggestion id: {suggestion.id}")
        self._items[suggestion.id] = suggestion

    def get(self, suggestion_id: str) -> Optional[SuggestedChange]:
        return self._items.get(suggestion_id)

    def require_pending(self, suggestion_id: str, action: str = "update") -> SuggestedChange:
        suggestion = self._items.get(suggestion_id)
        if suggestion is None:
            raise InvalidStateTransition(suggestion_id, None, action)
        if not suggestion.is_pending:
            raise InvalidStateTransition(suggestion_id, suggestion.status.value, action)
        return suggestion

    def remove(self, suggestion_id: str) -> Optional[SuggestedChange]:
        return self._items.pop(suggestion_id, None)

    def active(self) -> List[SuggestedChange]:
        return list(self._items.values())

    def transition(self, suggestion_id: str, status: SuggestionStatus) -> SuggestedChange:
        """
        Moves a PENDING suggestion to a terminal status and drops it from the store.
        """
        if status == SuggestionStatus.PENDING:
            raise ValueError("PENDING is not a terminal status")
        suggestion = self.require_pending(suggestion_id, action="finalize")
        suggestion.status = status
        del self._items[suggestion_id]
        logger.debug(f"Suggestion {suggestion_id} -> {status.value}")
        return suggestion
