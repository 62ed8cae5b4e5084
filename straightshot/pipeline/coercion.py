"""
Coercion & Consistency Engine

Turns whatever the upstream model returned into a schema-complete
AnalysisResult. coerce() is total: it never raises, whatever the input shape.

Rules:
- string fields default to "unknown" when absent or blank
- list fields default to [] and their items are coerced field by field
- confidence is clamped to [0, 1]; overall_score falls back to
  round(confidence * 100) and is clamped to [0, 100]
- a verdict that contradicts the score band gets a parenthetical note
  appended; the model's own wording is kept
- missing high-value inputs are called out in notes
"""

import re
import math
import logging
from dataclasses import fields
from typing import Any, Dict, List, Optional

from straightshot.models import (
    UNKNOWN,
    AnalysisResult,
    CommonIssue,
    MaintenanceItem,
    VehicleSnapshot,
    clean_text,
    to_number,
)

logger = logging.getLogger(__name__)

# ============================================================
# SCHEMA
# ============================================================

TEXT_FIELDS = (
    "summary",
    "final_verdict",
    "market_value_estimate",
    "price_opinion",
    "year_model_reputation",
    "remaining_lifespan_estimate",
    "daily_driver_vs_project",
    "mechanical_skill_required",
    "notes",
)

STRING_LIST_FIELDS = (
    "upsides",
    "inspection_checklist",
    "buyer_questions",
    "risk_flags",
    "deal_breakers",
    "tags",
)

RECORD_LIST_FIELDS = {
    "common_issues": (CommonIssue, "issue"),
    "expected_maintenance_near_term": (MaintenanceItem, "item"),
    "wear_items": (MaintenanceItem, "item"),
}

LIST_LIMITS = {
    "tags": 8,
    "buyer_questions": 12,
}
DEFAULT_LIST_LIMIT = 12

DEFAULT_CONFIDENCE = 0.5

# Common key mistakes from the model
KEY_MAPPINGS = {
    'score': 'overall_score',
    'overall': 'overall_score',
    'verdict': 'final_verdict',
    'issues': 'common_issues',
    'known_issues': 'common_issues',
    'questions': 'buyer_questions',
    'questions_for_seller': 'buyer_questions',
    'risks': 'risk_flags',
    'red_flags': 'risk_flags',
    'pros': 'upsides',
    'checklist': 'inspection_checklist',
    'market_value': 'market_value_estimate',
    'dealbreakers': 'deal_breakers',
    'maintenance': 'expected_maintenance_near_term',
}

# Upper bound of each score band, inclusive
SCORE_BANDS = (
    (14, "No"),
    (34, "Risky"),
    (54, "Fair"),
    (71, "Good"),
    (87, "Great"),
    (100, "Steal"),
)

# "Don't buy" is rejection, checked before the bare "buy" below
REJECTION_RE = re.compile(r"walk\s*away|\bavoid|\b(?:don['\u2019]?t|do\s+not|never|not)\s+buy\b", re.IGNORECASE)
ACCEPTANCE_RE = re.compile(r"\bbuy\b|good\s+deal|worth\s+it", re.IGNORECASE)

REJECTION_NOTE = "Consistency note: the overall score of {score} ({label}) is more favorable than this verdict; weigh the listed risks before deciding."
ACCEPTANCE_NOTE = "Consistency note: the overall score of {score} ({label}) is less favorable than this verdict; verify condition and price before buying."
COMPLETENESS_NOTE = "Listing is missing {fields}; confidence is lower as a result."


# ============================================================
# FIELD HELPERS
# ============================================================

def score_label(score: float) -> str:
    """Band name for a 0-100 score."""
    for upper, label in SCORE_BANDS:
        if score <= upper:
            return label
    return SCORE_BANDS[-1][1]


def clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def _normalize_key(key: Any) -> str:
    text = str(key).strip().lower().replace(" ", "_").replace("-", "_")
    return KEY_MAPPINGS.get(text, text)


def _coerce_text(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        parts = [t for t in (_coerce_text(v) for v in value) if t != UNKNOWN]
        return "; ".join(parts) if parts else UNKNOWN
    if isinstance(value, dict):
        return UNKNOWN
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return clean_text(value) or UNKNOWN


def _as_list(value: Any) -> List[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, str) and value.strip():
        return [value]
    return []


def _coerce_string_item(item: Any) -> Optional[str]:
    if isinstance(item, dict):
        # e.g. {"question": "..."} - keep the text values in order
        text = "; ".join(t for t in (clean_text(v) for v in item.values()) if t)
        return text or None
    if isinstance(item, (list, tuple)):
        return None
    return clean_text(item)


def _coerce_string_list(value: Any, limit: int) -> List[str]:
    items = []
    for raw in _as_list(value):
        text = _coerce_string_item(raw)
        if text:
            items.append(text)
        if len(items) >= limit:
            break
    return items


def _coerce_record(item: Any, record_cls, primary: str):
    if isinstance(item, dict):
        normalized = {_normalize_key(k): v for k, v in item.items()}
        values = {f.name: _coerce_text(normalized.get(f.name)) for f in fields(record_cls)}
        if values[primary] == UNKNOWN:
            # Some models use a generic key for the headline text
            values[primary] = _coerce_text(
                normalized.get("name") or normalized.get("title") or normalized.get("description")
            )
        return record_cls(**values)
    text = _coerce_string_item(item)
    if text:
        return record_cls(**{primary: text})
    return None


def _coerce_record_list(value: Any, record_cls, primary: str, limit: int) -> list:
    records = []
    for raw in _as_list(value):
        record = _coerce_record(raw, record_cls, primary)
        if record is not None:
            records.append(record)
        if len(records) >= limit:
            break
    return records


def _append_note(text: str, note: str) -> str:
    if note in text:
        return text
    if text == UNKNOWN:
        return note
    return f"{text} ({note})"


# ============================================================
# CONSISTENCY RULES
# ============================================================

def repair_verdict(verdict: str, score: int) -> str:
    """
    Flag a verdict that contradicts its score band.

    The verdict text is never replaced: a parenthetical note is appended.
    """
    if verdict == UNKNOWN:
        return verdict

    label = score_label(score)
    if REJECTION_RE.search(verdict):
        if score >= 55:
            logger.info(f"[COERCE] Verdict '{verdict[:40]}' contradicts score {score}")
            return _append_note(verdict, REJECTION_NOTE.format(score=score, label=label))
    elif ACCEPTANCE_RE.search(verdict):
        if score <= 34:
            logger.info(f"[COERCE] Verdict '{verdict[:40]}' contradicts score {score}")
            return _append_note(verdict, ACCEPTANCE_NOTE.format(score=score, label=label))
    return verdict


def completeness_note(snapshot: VehicleSnapshot) -> Optional[str]:
    missing = snapshot.missing_high_value_fields()
    if not missing:
        return None
    if len(missing) == 1:
        listed = missing[0]
    else:
        listed = ", ".join(missing[:-1]) + f" and {missing[-1]}"
    return COMPLETENESS_NOTE.format(fields=listed)


# ============================================================
# ENTRY POINT
# ============================================================

def coerce(raw: Any, snapshot: Any = None) -> AnalysisResult:
    """
    Build a schema-complete AnalysisResult from untrusted model output.

    Args:
        raw: Parsed model JSON (any shape, including None)
        snapshot: The VehicleSnapshot (or raw dict) the analysis was made for

    Returns:
        AnalysisResult satisfying every field and range constraint
    """
    if not isinstance(snapshot, VehicleSnapshot):
        snapshot = VehicleSnapshot.from_dict(snapshot)

    data: Dict[str, Any] = {}
    if isinstance(raw, dict):
        for key, value in raw.items():
            name = _normalize_key(key)
            # First spelling wins when the model repeats a key
            if name not in data or data[name] in (None, "", []):
                data[name] = value
    elif raw is not None:
        logger.warning(f"[COERCE] Model output is {type(raw).__name__}, not an object")

    result = AnalysisResult()

    for name in TEXT_FIELDS:
        setattr(result, name, _coerce_text(data.get(name)))

    for name in STRING_LIST_FIELDS:
        limit = LIST_LIMITS.get(name, DEFAULT_LIST_LIMIT)
        setattr(result, name, _coerce_string_list(data.get(name), limit))

    for name, (record_cls, primary) in RECORD_LIST_FIELDS.items():
        limit = LIST_LIMITS.get(name, DEFAULT_LIST_LIMIT)
        setattr(result, name, _coerce_record_list(data.get(name), record_cls, primary, limit))

    confidence = to_number(data.get("confidence"))
    if confidence is None:
        confidence = DEFAULT_CONFIDENCE
    result.confidence = round(clamp(confidence, 0.0, 1.0), 4)

    score = to_number(data.get("overall_score"))
    if score is None:
        score = result.confidence * 100
    # Half-up rounding
    result.overall_score = int(math.floor(clamp(score, 0.0, 100.0) + 0.5))
    result.score_label = score_label(result.overall_score)

    result.final_verdict = repair_verdict(result.final_verdict, result.overall_score)

    note = completeness_note(snapshot)
    if note:
        result.notes = _append_note(result.notes, note)

    return result
