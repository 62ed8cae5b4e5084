"""
Analysis state published by the page agent to the overlay renderer.
"""

import copy
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from straightshot.config import LOADING_TEXT

# Narrative fields that must carry real text for a result to be shown
REQUIRED_NARRATIVE_FIELDS = ("summary", "final_verdict")

# Placeholder values the model (or coercion) uses for "nothing to say"
PLACEHOLDER_TEXT = ("unknown", "(none)", "not found", "not available", "-", "\u2014")


class AnalysisStatus(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    READY = "ready"
    ERRORED = "errored"
    RATE_LIMITED = "rate_limited"
    GATED = "gated"


@dataclass
class AnalysisState:
    """
    One per page. sequence_number decides which response may mutate it:
    a result stamped with an older number is dropped.
    """
    status: AnalysisStatus = AnalysisStatus.IDLE
    loading: bool = False
    loading_text: str = LOADING_TEXT
    ready: bool = False
    error: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    gated: bool = False
    retrying: bool = False
    validated: bool = False
    free_count: int = 0
    dismissed: bool = False

    sequence_number: int = 0
    last_snapshot_key: Optional[str] = None
    requested_key: Optional[str] = None
    next_allowed_at: float = 0.0
    last_call_at: float = 0.0

    # Keys with a request outstanding (single-flight guard)
    in_flight: set = field(default_factory=set)

    def snapshot(self) -> "AnalysisState":
        """Detached copy for listeners."""
        return replace(
            self,
            data=copy.deepcopy(self.data),
            in_flight=set(self.in_flight),
        )


def is_meaningful_text(value: Any) -> bool:
    if value is None:
        return False
    text = str(value).strip()
    if not text:
        return False
    return text.lower() not in PLACEHOLDER_TEXT


def missing_narrative_fields(payload: Any) -> List[str]:
    """Required narrative fields that are absent, blank or placeholders."""
    if not isinstance(payload, dict):
        return list(REQUIRED_NARRATIVE_FIELDS)
    return [name for name in REQUIRED_NARRATIVE_FIELDS if not is_meaningful_text(payload.get(name))]
