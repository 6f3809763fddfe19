"""
Tests for redraft.intake — turning AI edit batches into suggestions.

Run: python3 test_intake.py
From: python/
"""

import json
import sys

sys.path.insert(0, '.')

from redraft.config import IntakeSettings, RedraftSettings
from redraft.intake import SuggestionIntake, parse_batch
from redraft.manager import SuggestionManager
from redraft.models import EditBatch, ErrorKind, ProposedChange
from redraft.surfaces.memory import InMemorySurface


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _intake(text, max_changes=1):
    surface = InMemorySurface(text)
    intake = SuggestionIntake(SuggestionManager(surface), IntakeSettings(max_changes_per_batch=max_changes))
    return intake, surface


def _change(target, replacement, **extra):
    return {"targetText": target, "replacement": replacement, **extra}


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def test_parse_camel_case_json():
    raw = json.dumps(
        {
            "reasoning": "Tighten wording",
            "changes": [
                {
                    "contextBefore": "The ",
                    "targetText": "quick fox",
                    "contextAfter": " jumps",
                    "replacement": "slow fox",
                    "description": "Pace",
                }
            ],
        }
    )
    batch = parse_batch(raw)
    assert batch.reasoning == "Tighten wording"
    change = batch.changes[0]
    assert change.context_before == "The "
    assert change.target_text == "quick fox"
    assert change.context_after == " jumps"
    assert change.description == "Pace"


def test_parse_bare_list_and_snake_case():
    batch = parse_batch([{"target_text": "fox", "replacement": "dog"}])
    assert batch.reasoning == ""
    assert batch.changes[0].resolved_target() == "fox"


def test_legacy_target_field():
    change = ProposedChange(target="fox", replacement="dog")
    assert change.resolved_target() == "fox"
    assert ProposedChange(targetText="new", target="old").resolved_target() == "new"


def test_parse_passes_batch_through():
    batch = EditBatch(changes=[ProposedChange(target_text="a")])
    assert parse_batch(batch) is batch


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------

def test_submit_applies_first_change_only():
    intake, surface = _intake("alpha beta gamma")
    result = intake.submit({"changes": [_change("alpha", "A"), _change("gamma", "G")]})

    assert result.success
    assert len(result.created) == 1
    assert result.created[0].original_text == "alpha"
    assert [c.target_text for c in result.discarded] == ["gamma"]
    assert surface.get_plain_text() == "alpha A beta gamma"


def test_submit_respects_configured_limit():
    intake, surface = _intake("alpha beta gamma", max_changes=2)
    result = intake.submit({"changes": [_change("alpha", "A"), _change("gamma", "G")]})
    assert len(result.created) == 2
    assert result.discarded == []
    assert surface.get_plain_text() == "alpha A beta gamma G"


def test_submit_uses_context():
    intake, surface = _intake("a cat and a cat sat")
    result = intake.submit([_change("cat", "dog", contextBefore="a ", contextAfter=" sat")])
    assert result.created[0].original_span.start == 12
    assert surface.get_plain_text() == "a cat and a cat dog sat"


def test_submit_reports_locate_failure():
    intake, surface = _intake("The quick fox jumps.")
    result = intake.submit([_change("purple elephant", "grey mouse")])
    assert not result.success
    assert result.errors[0].kind == ErrorKind.LOCATE_FAILURE
    assert result.created == []
    assert surface.get_plain_text() == "The quick fox jumps."


def test_submit_change_without_target():
    intake, _ = _intake("text")
    result = intake.submit([{"replacement": "x"}])
    assert result.errors[0].kind == ErrorKind.INVALID_REQUEST


def test_submit_malformed_json():
    intake, surface = _intake("text")
    result = intake.submit("{not json")
    assert not result.success
    assert result.errors[0].kind == ErrorKind.INVALID_REQUEST
    assert surface.get_plain_text() == "text"


def test_submit_wrong_shape():
    intake, _ = _intake("text")
    result = intake.submit({"changes": "not a list"})
    assert result.errors[0].kind == ErrorKind.INVALID_REQUEST


def test_submit_empty_batch():
    intake, _ = _intake("text")
    result = intake.submit({"reasoning": "Looks fine", "changes": []})
    assert result.success
    assert result.reasoning == "Looks fine"
    assert result.created == []


def test_streaming_submission():
    intake, surface = _intake("The quick fox jumps.")
    result = intake.submit([_change("quick fox", "slow fox")], streaming=True)
    suggestion = result.created[0]
    assert suggestion.streaming
    assert surface.get_plain_text() == "The quick fox  jumps."

    assert intake.stream(suggestion.id, "slow fox").ok
    assert surface.get_plain_text() == "The quick fox slow fox jumps."


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

def test_settings_from_env():
    settings = RedraftSettings.from_env(
        {
            "REDRAFT_FUZZY_THRESHOLD": "0.75",
            "REDRAFT_MAX_CHANGES_PER_BATCH": "3",
            "REDRAFT_SEPARATOR": "|",
        }
    )
    assert settings.locator.fuzzy_threshold == 0.75
    assert settings.intake.max_changes_per_batch == 3
    assert settings.suggestions.separator == "|"


def test_settings_defaults():
    settings = RedraftSettings.from_env({})
    assert settings.locator.fuzzy_threshold == 0.6
    assert settings.intake.max_changes_per_batch == 1
    assert settings.suggestions.separator == " "
    assert settings.suggestions.highlight_color == "#86efac"


# ---------------------------------------------------------------------------

if __name__ == '__main__':
    tests = [
        test_parse_camel_case_json,
        test_parse_bare_list_and_snake_case,
        test_legacy_target_field,
        test_parse_passes_batch_through,
        test_submit_applies_first_change_only,
        test_submit_respects_configured_limit,
        test_submit_uses_context,
        test_submit_reports_locate_failure,
        test_submit_change_without_target,
        test_submit_malformed_json,
        test_submit_wrong_shape,
        test_submit_empty_batch,
        test_streaming_submission,
        test_settings_from_env,
        test_settings_defaults,
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
