"""
Snapshot fingerprinting.

compute_key() derives the client-side identity of a listing (SnapshotKey),
used to collapse repeated DOM re-scrapes of the same listing.
canonicalize_snapshot() serializes the fields that change the analysis, in a
fixed order, and is the material for the edge cache key and the model prompt.
"""

import re
import json
import hashlib
from typing import Any, Dict, Optional, Union
from urllib.parse import urlsplit

from straightshot.models import VehicleSnapshot, clean_text

MARKETPLACE_ITEM_RE = re.compile(r"/marketplace/item/(\d+)")

# Order matters: it is part of the cache key
ANALYSIS_FIELDS = (
    "source_text",
    "year",
    "make",
    "model",
    "trim",
    "price_usd",
    "mileage_miles",
    "title_status",
    "transmission",
    "drivetrain",
    "engine",
    "fuel_type",
    "seller_description",
    "about_items",
)

SnapshotLike = Union[VehicleSnapshot, Dict[str, Any]]


def _as_snapshot(snapshot: SnapshotLike) -> VehicleSnapshot:
    if isinstance(snapshot, VehicleSnapshot):
        return snapshot
    return VehicleSnapshot.from_dict(snapshot)


def listing_identifier(url: Optional[str]) -> str:
    """
    Reduce a listing URL to a stable identifier.

    Marketplace item URLs collapse to their numeric item id; anything else
    drops scheme, query string and fragment.
    """
    url = clean_text(url)
    if not url:
        return ""
    match = MARKETPLACE_ITEM_RE.search(url)
    if match:
        return match.group(1)
    parts = urlsplit(url if "//" in url else f"//{url}")
    host = (parts.netloc or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return f"{host}{parts.path.rstrip('/')}"


def compute_key(snapshot: SnapshotLike) -> Optional[str]:
    """
    Canonical identity of a listing, or None without a year and a make.
    """
    snap = _as_snapshot(snapshot)
    if not snap.has_identity:
        return None

    parts = (
        ("id", listing_identifier(snap.url)),
        ("vin", snap.vin or ""),
        ("year", str(snap.year) if snap.year is not None else ""),
        ("make", (snap.make or "").lower()),
        ("model", (snap.model or "").lower()),
        ("trim", (snap.trim or "").lower()),
    )
    material = "|".join(f"{name}={value}" for name, value in parts)
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


def analysis_fields(snapshot: SnapshotLike) -> Dict[str, Any]:
    """Ordered dict of the fields that affect the analysis."""
    snap = _as_snapshot(snapshot)
    fields = {}
    for name in ANALYSIS_FIELDS:
        value = getattr(snap, name)
        if name == "about_items":
            value = list(value)
        fields[name] = value
    return fields


def canonicalize_snapshot(snapshot: SnapshotLike) -> str:
    return json.dumps(analysis_fields(snapshot), separators=(",", ":"), ensure_ascii=False)


def cache_key(snapshot: SnapshotLike, schema_version: str) -> str:
    material = f"{schema_version}:{canonicalize_snapshot(snapshot)}"
    return hashlib.sha256(material.encode("utf-8")).hexdigest()
