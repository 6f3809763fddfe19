from importlib.metadata import PackageNotFoundError, version

from redraft.config import RedraftSettings
from redraft.intake import SuggestionIntake, parse_batch
from redraft.locator import TextLocator, locate
from redraft.manager import SuggestionManager
from redraft.models import (
    EditBatch,
    LocatedSpan,
    LocateFailure,
    LocateRequest,
    ProposedChange,
    Span,
    SuggestedChange,
    SuggestionStatus,
)
from redraft.surfaces.memory import InMemorySurface

try:
    __version__ = version("redraft")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

__all__ = [
    "SuggestionManager",
    "SuggestionIntake",
    "TextLocator",
    "InMemorySurface",
    "RedraftSettings",
    "EditBatch",
    "LocateFailure",
    "LocateRequest",
    "LocatedSpan",
    "ProposedChange",
    "Span",
    "SuggestedChange",
    "SuggestionStatus",
    "locate",
    "parse_batch",
    "__version__",
]
