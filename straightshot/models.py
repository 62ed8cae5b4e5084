"""
Data records shared by the edge service and the page agent.

VehicleSnapshot is the structured description of one listing produced by the
page extractor. AnalysisResult is the coerced, schema-complete assessment the
edge service returns. Both are built from untrusted JSON only through total
constructors (VehicleSnapshot.from_dict, pipeline.coercion.coerce).
"""

import math
from dataclasses import dataclass, field, asdict
from typing import Dict, Any, Optional, Tuple, List

UNKNOWN = "unknown"

# Fields the page extractor may emit, in the order they are serialized
SNAPSHOT_FIELDS = (
    "url",
    "source_text",
    "year",
    "make",
    "model",
    "trim",
    "vin",
    "price_usd",
    "mileage_miles",
    "title_status",
    "transmission",
    "drivetrain",
    "engine",
    "fuel_type",
    "seller_description",
)

# camelCase spellings seen from older extension builds
_FIELD_ALIASES = {
    "sellerDescription": "seller_description",
    "sourceText": "source_text",
    "priceUsd": "price_usd",
    "mileageMiles": "mileage_miles",
    "titleStatus": "title_status",
    "fuelType": "fuel_type",
    "aboutItems": "about_items",
}


def clean_text(value: Any) -> Optional[str]:
    """Trim and collapse whitespace; None, blanks and non-scalars become None."""
    if value is None or isinstance(value, (dict, list, tuple, set, bool)):
        return None
    text = " ".join(str(value).split())
    return text or None


def to_number(value: Any) -> Optional[float]:
    """Parse a finite number from ints, floats or strings like "$12,500"."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).replace("$", "").replace(",", "").strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _whole(value: Optional[float]) -> Optional[Any]:
    """Render whole floats as ints so 12500.0 and 12500 serialize the same."""
    if value is None:
        return None
    return int(value) if value.is_integer() else value


@dataclass(frozen=True)
class VehicleSnapshot:
    """One listing at one point in time. Every field is optional."""
    url: Optional[str] = None
    source_text: Optional[str] = None
    year: Optional[int] = None
    make: Optional[str] = None
    model: Optional[str] = None
    trim: Optional[str] = None
    vin: Optional[str] = None
    price_usd: Optional[Any] = None
    mileage_miles: Optional[Any] = None
    title_status: Optional[str] = None
    transmission: Optional[str] = None
    drivetrain: Optional[str] = None
    engine: Optional[str] = None
    fuel_type: Optional[str] = None
    seller_description: Optional[str] = None
    about_items: Tuple[str, ...] = ()
    extra: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @classmethod
    def from_dict(cls, data: Any) -> "VehicleSnapshot":
        """Build a snapshot from an untrusted mapping. Never raises."""
        if not isinstance(data, dict):
            return cls()

        normalized = {}
        for key, value in data.items():
            normalized[_FIELD_ALIASES.get(key, key)] = value

        year_number = to_number(normalized.get("year"))
        year = int(year_number) if year_number is not None and year_number.is_integer() and year_number > 0 else None

        about_raw = normalized.get("about_items") or []
        if not isinstance(about_raw, (list, tuple)):
            about_raw = []
        about_items = tuple(t for t in (clean_text(item) for item in about_raw) if t)

        vin = clean_text(normalized.get("vin"))

        extra = {
            k: v for k, v in normalized.items()
            if k not in SNAPSHOT_FIELDS and k != "about_items"
        }

        return cls(
            url=clean_text(normalized.get("url")),
            source_text=clean_text(normalized.get("source_text")),
            year=year,
            make=clean_text(normalized.get("make")),
            model=clean_text(normalized.get("model")),
            trim=clean_text(normalized.get("trim")),
            vin=vin.upper() if vin else None,
            price_usd=_whole(to_number(normalized.get("price_usd"))),
            mileage_miles=_whole(to_number(normalized.get("mileage_miles"))),
            title_status=clean_text(normalized.get("title_status")),
            transmission=clean_text(normalized.get("transmission")),
            drivetrain=clean_text(normalized.get("drivetrain")),
            engine=clean_text(normalized.get("engine")),
            fuel_type=clean_text(normalized.get("fuel_type")),
            seller_description=clean_text(normalized.get("seller_description")),
            about_items=about_items,
            extra=extra,
        )

    @property
    def has_identity(self) -> bool:
        return self.year is not None and self.make is not None

    def missing_high_value_fields(self) -> List[str]:
        """Inputs whose absence materially lowers analysis confidence."""
        missing = []
        if self.price_usd is None:
            missing.append("price")
        if self.mileage_miles is None:
            missing.append("mileage")
        if not self.seller_description:
            missing.append("seller description")
        return missing

    def to_payload(self) -> Dict[str, Any]:
        """JSON body for POST /analyze."""
        payload = {name: getattr(self, name) for name in SNAPSHOT_FIELDS}
        payload["about_items"] = list(self.about_items)
        return payload


# ============================================================
# Analysis result records
# ============================================================

@dataclass
class CommonIssue:
    issue: str = UNKNOWN
    severity: str = UNKNOWN
    typical_failure_mileage: str = UNKNOWN
    estimated_cost: str = UNKNOWN
    estimated_cost_diy: str = UNKNOWN
    estimated_cost_shop: str = UNKNOWN


@dataclass
class MaintenanceItem:
    item: str = UNKNOWN
    typical_mileage_range: str = UNKNOWN
    why_it_matters: str = UNKNOWN
    estimated_cost_diy: str = UNKNOWN
    estimated_cost_shop: str = UNKNOWN


@dataclass
class AnalysisResult:
    """Schema-complete buying assessment returned by POST /analyze"""
    summary: str = UNKNOWN
    final_verdict: str = UNKNOWN
    market_value_estimate: str = UNKNOWN
    price_opinion: str = UNKNOWN
    year_model_reputation: str = UNKNOWN
    remaining_lifespan_estimate: str = UNKNOWN
    daily_driver_vs_project: str = UNKNOWN
    mechanical_skill_required: str = UNKNOWN
    notes: str = UNKNOWN
    overall_score: int = 50
    confidence: float = 0.5
    score_label: str = "Fair"
    common_issues: List[CommonIssue] = field(default_factory=list)
    expected_maintenance_near_term: List[MaintenanceItem] = field(default_factory=list)
    wear_items: List[MaintenanceItem] = field(default_factory=list)
    upsides: List[str] = field(default_factory=list)
    inspection_checklist: List[str] = field(default_factory=list)
    buyer_questions: List[str] = field(default_factory=list)
    risk_flags: List[str] = field(default_factory=list)
    deal_breakers: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
