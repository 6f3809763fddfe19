"""
Tunable settings for locating, annotating and batch intake.

Defaults reproduce the behaviour described in the package docs; the CLI and
the MCP server build their settings with RedraftSettings.from_env().
"""

import os
import string
from typing import Mapping, Optional

from pydantic import BaseModel, Field

# ASCII punctuation, CJK full-width punctuation, curly quotes and dashes.
DEFAULT_PUNCTUATION = string.punctuation + "，。！？、；：“”‘’（）《》【】「」…—–"


class LocatorSettings(BaseModel):
    fuzzy_threshold: float = Field(
        0.6,
        ge=0.0,
        le=1.0,
        description="Minimum similarity for a fuzzy sliding-window match to be accepted.",
    )
    refine_below: float = Field(
        0.95,
        ge=0.0,
        le=1.0,
        description="Coarse fuzzy matches scoring below this are refined with a stride-1 rescan.",
    )
    stride_divisor: int = Field(
        10,
        ge=1,
        description="Coarse fuzzy stride is max(1, len(target) // stride_divisor).",
    )
    punctuation: str = Field(
        DEFAULT_PUNCTUATION,
        description="Characters ignored (together with all whitespace) by punctuation-insensitive matching.",
    )


class SuggestionSettings(BaseModel):
    separator: str = Field(
        " ",
        min_length=1,
        max_length=1,
        description="Single character inserted between the struck original and the replacement.",
    )
    highlight_color: str = Field("#86efac", description="Colour attached to highlight marks.")
    id_prefix: str = Field("suggestion", description="Prefix of generated suggestion ids.")


class IntakeSettings(BaseModel):
    max_changes_per_batch: int = Field(
        1,
        ge=1,
        description=(
            "How many changes of one AI batch are applied. Pending suggestions do not renumber "
            "each other's offsets, so anything above 1 is only safe for non-overlapping changes."
        ),
    )


class RedraftSettings(BaseModel):
    locator: LocatorSettings = Field(default_factory=LocatorSettings)
    suggestions: SuggestionSettings = Field(default_factory=SuggestionSettings)
    intake: IntakeSettings = Field(default_factory=IntakeSettings)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RedraftSettings":
        """
        Builds settings from REDRAFT_* environment variables.

        Recognised: REDRAFT_FUZZY_THRESHOLD, REDRAFT_MAX_CHANGES_PER_BATCH,
        REDRAFT_SEPARATOR. Unset variables keep their defaults; invalid values
        raise pydantic.ValidationError.
        """
        env = os.environ if environ is None else environ

        locator = {}
        if env.get("REDRAFT_FUZZY_THRESHOLD"):
            locator["fuzzy_threshold"] = env["REDRAFT_FUZZY_THRESHOLD"]

        suggestions = {}
        if env.get("REDRAFT_SEPARATOR"):
            suggestions["separator"] = env["REDRAFT_SEPARATOR"]

        intake = {}
        if env.get("REDRAFT_MAX_CHANGES_PER_BATCH"):
            intake["max_changes_per_batch"] = env["REDRAFT_MAX_CHANGES_PER_BATCH"]

        return cls(
            locator=LocatorSettings(**locator),
            suggestions=SuggestionSettings(**suggestions),
            intake=IntakeSettings(**intake),
        )
