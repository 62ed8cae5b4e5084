"""
Pipeline Orchestrator

Single entry point for the edge analysis pipeline.

Flow:
1. Rate limiter: admit or reject the client (429 with a retry hint)
2. Response cache: serve the stored body on a hit
3. Single-flight: join an identical upstream call already in progress
4. Model gateway: ask the upstream model
5. Coercion: make the answer schema-complete and internally consistent
6. Response cache: store the final body
"""

import asyncio
import logging
import time as _time
from dataclasses import dataclass
from typing import Any, Dict, TYPE_CHECKING

from straightshot.models import VehicleSnapshot
from straightshot.pipeline.coercion import coerce
from straightshot.services.exceptions import ExternalServiceError, RateLimitError

if TYPE_CHECKING:
    from straightshot.services.app_state import AppState

logger = logging.getLogger(__name__)

CACHE_HIT = "HIT"
CACHE_MISS = "MISS"


@dataclass
class PipelineResult:
    """Serialized analysis plus how it was produced"""
    body: bytes
    cache_status: str
    total_time_ms: int = 0


class AnalysisPipeline:
    """
    Runs one POST /analyze against the shared AppState.

    Usage:
        pipeline = AnalysisPipeline(app_state)
        result = await pipeline.run(snapshot, client_id)
    """

    def __init__(self, state: "AppState"):
        self.state = state

    def admit(self, client_id: str) -> None:
        """Raise RateLimitError if the client must wait."""
        decision = self.state.rate_limiter.admit(client_id)
        if not decision.allowed:
            self.state.increment_stat("rate_limited")
            raise RateLimitError("analyze", decision.retry_after_seconds)

    async def run(self, snapshot: VehicleSnapshot, client_id: str) -> PipelineResult:
        _start = _time.time()
        state = self.state
        state.increment_stat("total_requests")

        # Rate limiting comes before the cache so hits also count against the client
        self.admit(client_id)

        entry = state.cache.lookup(snapshot)
        if entry is not None:
            state.increment_stat("cache_hits")
            return PipelineResult(entry.body, CACHE_HIT, int((_time.time() - _start) * 1000))

        state.increment_stat("cache_misses")
        state.gateway.ensure_configured()

        key = state.cache.make_key(snapshot)
        pending = state.join_in_flight(key)
        if pending is not None:
            state.increment_stat("coalesced")
            logger.info(f"[ANALYZE] Joining in-flight upstream call {key[:12]}")
            # Shielded: a follower that disconnects must not cancel the shared call
            body = await asyncio.shield(pending)
            return PipelineResult(body, CACHE_HIT, int((_time.time() - _start) * 1000))

        state.start_in_flight(key)
        try:
            body = await self._analyze_upstream(snapshot)
        except BaseException as e:
            state.complete_in_flight(key, error=e)
            raise
        state.complete_in_flight(key, result=body)

        elapsed = int((_time.time() - _start) * 1000)
        logger.info(f"[ANALYZE] {snapshot.year} {snapshot.make}: MISS in {elapsed}ms")
        return PipelineResult(body, CACHE_MISS, elapsed)

    async def _analyze_upstream(self, snapshot: VehicleSnapshot) -> bytes:
        state = self.state
        state.increment_stat("upstream_calls")
        try:
            raw = await state.gateway.analyze(snapshot)
        except ExternalServiceError:
            state.increment_stat("upstream_errors")
            raise

        result: Dict[str, Any] = coerce(raw, snapshot).to_dict()
        return state.cache.store(snapshot, result).body
