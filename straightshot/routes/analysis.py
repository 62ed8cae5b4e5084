"""
Analysis Route - Main listing analysis endpoint

This module contains the POST /analyze endpoint, which runs a vehicle
snapshot through the rate limiter, response cache and model gateway.
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import Response

from straightshot.pipeline.orchestrator import AnalysisPipeline
from straightshot.pipeline.request_parser import client_identifier, parse_snapshot
from straightshot.services.app_state import AppState, get_app_state_from_request
from straightshot.services.auth import bearer_token
from straightshot.services.response_wrapper import analysis_response

logger = logging.getLogger(__name__)

# Create router for analysis endpoints
router = APIRouter(tags=["analysis"])


@router.post("/analyze")
async def analyze(request: Request) -> Response:
    """
    Analyze one listing snapshot.

    Returns the coerced AnalysisResult with X-Cache and X-User-Validated
    headers. Errors are raised as ProxyException subclasses and rendered by
    the error handlers.
    """
    app_state: AppState = get_app_state_from_request(request)

    snapshot = parse_snapshot(await request.body())
    peer = request.client.host if request.client else None
    client_id = client_identifier(request.headers, peer)

    result = await AnalysisPipeline(app_state).run(snapshot, client_id)

    token = bearer_token(request.headers.get("authorization"))
    validated = await app_state.auth.is_token_validated(token) if token else False

    logger.info(f"[ANALYZE] {client_id}: {result.cache_status} in {result.total_time_ms}ms (validated={validated})")
    return analysis_response(result.body, result.cache_status, validated)
