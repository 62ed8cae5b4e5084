"""
Response formatting utilities for the edge service.

Handles cleanup of model text before JSON parsing and the JSON responses
returned by the analysis routes.
"""

import logging
from typing import Dict, Optional

from fastapi.responses import Response

from straightshot.config import CACHE

logger = logging.getLogger(__name__)


def sanitize_json_response(text: str) -> str:
    """Clean up AI response text for JSON parsing."""
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        text = "\n".join(lines[1:-1] if lines[-1].strip() == "```" else lines[1:])
    text = text.replace("```json", "").replace("```", "")

    replacements = {
        "\u2018": "'", "\u2019": "'", "\u201c": '"', "\u201d": '"',
        "\u00a0": " ",
    }
    for old, new in replacements.items():
        text = text.replace(old, new)

    # Extract JSON object if there's extra text before/after
    if text and '{' in text:
        start = text.find('{')
        end = text.rfind('}') + 1
        if start < end:
            text = text[start:end]

    return text.strip()


def analysis_response(
    body: bytes,
    cache_status: str,
    user_validated: bool,
    headers: Optional[Dict[str, str]] = None,
) -> Response:
    """
    Wrap a serialized analysis in the 200 response.

    The body is passed through untouched so cache hits stay byte-identical.
    """
    response_headers = {
        "Cache-Control": f"public, s-maxage={CACHE.ttl_seconds}",
        "X-Cache": cache_status,
        "X-User-Validated": "true" if user_validated else "false",
    }
    if headers:
        response_headers.update(headers)
    return Response(
        content=body,
        status_code=200,
        media_type="application/json",
        headers=response_headers,
    )
