# -*- coding: utf-8 -*-
"""Tests for the coercion and consistency engine."""

from __future__ import annotations

import pytest

from straightshot.models import UNKNOWN, CommonIssue, MaintenanceItem
from straightshot.pipeline.coercion import coerce, repair_verdict, score_label


COMPLETE_SNAPSHOT = {
    "year": 2014,
    "make": "Honda",
    "price_usd": 9500,
    "mileage_miles": 112000,
    "seller_description": "One owner.",
}


def test_empty_input_yields_defaults() -> None:
    result = coerce({}, COMPLETE_SNAPSHOT)

    assert result.confidence == 0.5
    assert result.overall_score == 50
    assert result.score_label == "Fair"
    assert result.upsides == []
    assert result.common_issues == []
    assert result.summary == UNKNOWN
    assert result.final_verdict == UNKNOWN
    assert result.notes == UNKNOWN


@pytest.mark.parametrize("raw", [None, [], "not an object", 42, {"confidence": None, "tags": None}])
def test_malformed_input_never_raises(raw) -> None:
    result = coerce(raw, None).to_dict()

    assert 0 <= result["overall_score"] <= 100
    assert 0.0 <= result["confidence"] <= 1.0
    assert isinstance(result["tags"], list)
    assert isinstance(result["summary"], str)


def test_walk_away_verdict_with_high_score_gets_note() -> None:
    result = coerce({"final_verdict": "walk away", "overall_score": 80, "confidence": 0.8}, {})

    assert result.overall_score == 80
    assert result.final_verdict.startswith("walk away (")
    assert "Consistency note" in result.final_verdict
    assert "Great" in result.final_verdict


def test_acceptance_verdict_with_low_score_gets_opposite_note() -> None:
    result = coerce({"final_verdict": "Good deal, buy it.", "overall_score": 20}, COMPLETE_SNAPSHOT)

    assert result.final_verdict.startswith("Good deal, buy it. (")
    assert "less favorable" in result.final_verdict
    assert result.overall_score == 20


def test_consistent_verdicts_are_left_alone() -> None:
    assert repair_verdict("Avoid this one.", 20) == "Avoid this one."
    assert repair_verdict("Worth it at this price.", 80) == "Worth it at this price."
    assert repair_verdict("Decent commuter.", 50) == "Decent commuter."


def test_repair_is_idempotent() -> None:
    once = repair_verdict("Walk away.", 90)
    assert repair_verdict(once, 90) == once


def test_score_falls_back_to_confidence() -> None:
    assert coerce({"confidence": 0.734}, COMPLETE_SNAPSHOT).overall_score == 73
    assert coerce({"confidence": 0.125}, COMPLETE_SNAPSHOT).overall_score == 13


def test_numbers_are_clamped() -> None:
    result = coerce({"overall_score": 150, "confidence": 7}, COMPLETE_SNAPSHOT)
    assert result.overall_score == 100
    assert result.confidence == 1.0
    assert result.score_label == "Steal"

    result = coerce({"overall_score": "-20", "confidence": "-0.5"}, COMPLETE_SNAPSHOT)
    assert result.overall_score == 0
    assert result.confidence == 0.0


@pytest.mark.parametrize(
    "score,label",
    [(0, "No"), (14, "No"), (15, "Risky"), (34, "Risky"), (35, "Fair"), (54, "Fair"),
     (55, "Good"), (71, "Good"), (72, "Great"), (87, "Great"), (88, "Steal"), (100, "Steal")],
)
def test_score_bands(score, label) -> None:
    assert score_label(score) == label


def test_list_items_are_coerced_and_bounded() -> None:
    raw = {
        "upsides": "Cheap to run",
        "risk_flags": ["  Salvage   title ", None, "", {"flag": "Flood damage"}],
        "tags": [f"tag{i}" for i in range(20)],
        "common_issues": ["Rust on rear arches", {"Issue": "Timing chain", "severity": "high"}, None],
        "wear_items": [{"name": "Brake pads", "estimated_cost_diy": 80}],
    }

    result = coerce(raw, COMPLETE_SNAPSHOT)

    assert result.upsides == ["Cheap to run"]
    assert result.risk_flags == ["Salvage title", "Flood damage"]
    assert len(result.tags) == 8
    assert result.common_issues == [
        CommonIssue(issue="Rust on rear arches"),
        CommonIssue(issue="Timing chain", severity="high"),
    ]
    assert result.wear_items == [MaintenanceItem(item="Brake pads", estimated_cost_diy="80")]


def test_common_key_mistakes_are_mapped() -> None:
    result = coerce({"score": 66, "verdict": "Solid buy", "pros": ["Low miles"]}, COMPLETE_SNAPSHOT)

    assert result.overall_score == 66
    assert result.final_verdict == "Solid buy"
    assert result.upsides == ["Low miles"]


def test_completeness_note_lists_missing_inputs() -> None:
    result = coerce({"notes": "Ask for records."}, {"year": 2014, "make": "Honda", "price_usd": 9500})

    assert result.notes == (
        "Ask for records. (Listing is missing mileage and seller description; "
        "confidence is lower as a result.)"
    )


def test_completeness_note_replaces_unknown_notes() -> None:
    result = coerce({}, {"year": 2014, "make": "Honda"})
    assert result.notes == (
        "Listing is missing price, mileage and seller description; confidence is lower as a result."
    )


@pytest.mark.parametrize("verdict", ["Don't buy this one.", "Do not buy.", "I would never buy it", "Don’t buy"])
def test_negated_buy_is_read_as_rejection(verdict) -> None:
    assert repair_verdict(verdict, 20) == verdict

    repaired = repair_verdict(verdict, 80)
    assert "more favorable" in repaired
    assert "less favorable" not in repaired
