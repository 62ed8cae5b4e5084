"""
Request parsing for the analysis pipeline.

Turns the raw POST /analyze body into a VehicleSnapshot and resolves the
client identifier used for rate limiting.
"""

import json
import logging
from typing import Optional

from straightshot.models import VehicleSnapshot
from straightshot.services.exceptions import InvalidBodyError, MissingFieldsError

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ["year", "make"]


def parse_snapshot(body: bytes) -> VehicleSnapshot:
    """
    Parse a request body into a snapshot.

    Raises:
        InvalidBodyError: body is not a JSON object
        MissingFieldsError: year or make is absent
    """
    try:
        data = json.loads(body or b"")
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError) as e:
        logger.info(f"[REQUEST] Invalid JSON body ({len(body or b'')} bytes)")
        raise InvalidBodyError(cause=e)

    if not isinstance(data, dict):
        raise InvalidBodyError()

    snapshot = VehicleSnapshot.from_dict(data)
    if not snapshot.has_identity:
        raise MissingFieldsError(REQUIRED_FIELDS)

    logger.info(
        f"[REQUEST] {snapshot.year} {snapshot.make} {snapshot.model or ''}".rstrip()
    )
    return snapshot


def client_identifier(headers, peer: Optional[str] = None) -> str:
    """CF-Connecting-IP, then the first X-Forwarded-For hop, then the socket peer."""
    ip = (headers.get("cf-connecting-ip") or "").strip()
    if ip:
        return ip

    forwarded = (headers.get("x-forwarded-for") or "").split(",")[0].strip()
    if forwarded:
        return forwarded

    return peer or "unknown"
