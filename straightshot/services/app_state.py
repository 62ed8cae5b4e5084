"""
Application State Management for the StraightShot edge service

This module provides the single owned container for every piece of mutable
process state (rate limiter map, response cache, in-flight upstream calls,
session statistics), dependency-injected into routes via app.state.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional
from datetime import datetime
import asyncio
import logging

from straightshot.config import (
    CACHE,
    MODEL,
    OPENAI_API_KEY,
    ANTHROPIC_API_KEY,
)
from straightshot.pipeline.model_gateway import ModelGateway
from straightshot.services.auth import AuthVerifier
from straightshot.services.clients import create_openai_client, create_anthropic_client
from straightshot.services.exceptions import UpstreamTransportError
from straightshot.services.rate_limiter import RateLimiter
from straightshot.services.response_cache import ResponseCache

logger = logging.getLogger(__name__)


def _fresh_stats() -> Dict[str, Any]:
    return {
        "total_requests": 0,
        "cache_hits": 0,
        "cache_misses": 0,
        "coalesced": 0,
        "rate_limited": 0,
        "upstream_calls": 0,
        "upstream_errors": 0,
        "session_start": datetime.now().isoformat(),
    }


@dataclass
class AppState:
    """
    Centralized application state for the edge service.

    Everything a request can mutate hangs off one instance, so tests can build
    an isolated service with fakes for the gateway and auth verifier.
    """

    debug_mode: bool = False

    # Collaborators
    rate_limiter: RateLimiter = field(default_factory=RateLimiter)
    cache: ResponseCache = field(default_factory=ResponseCache)
    gateway: ModelGateway = field(default_factory=ModelGateway)
    auth: AuthVerifier = field(default_factory=AuthVerifier)

    # Upstream calls in flight, keyed by cache key
    in_flight: Dict[str, asyncio.Future] = field(default_factory=dict)
    _cleanup_task: Optional[asyncio.Task] = field(default=None, repr=False)

    # Cleanup configuration
    CLEANUP_INTERVAL: float = field(default=300.0, repr=False)

    # Session statistics
    stats: Dict[str, Any] = field(default_factory=_fresh_stats)

    @classmethod
    def from_settings(cls, debug_mode: bool = False) -> "AppState":
        """Build the production state from config.settings."""
        gateway = ModelGateway(
            config=MODEL,
            openai_client=create_openai_client(OPENAI_API_KEY, timeout=MODEL.timeout),
            anthropic_client=create_anthropic_client(ANTHROPIC_API_KEY, timeout=MODEL.timeout),
        )
        return cls(debug_mode=debug_mode, gateway=gateway, cache=ResponseCache(CACHE))

    def increment_stat(self, key: str, amount: int = 1) -> None:
        """Safely increment a statistics counter."""
        if key in self.stats:
            self.stats[key] += amount

    def get_session_duration(self) -> float:
        """Get session duration in seconds."""
        start = datetime.fromisoformat(self.stats["session_start"])
        return (datetime.now() - start).total_seconds()

    # ============================================================
    # Upstream single-flight
    # ============================================================
    # No locks needed: every mutation happens on the event loop thread
    # between await points.

    def join_in_flight(self, key: str) -> Optional[asyncio.Future]:
        """Return the pending upstream call for key, if any."""
        return self.in_flight.get(key)

    def start_in_flight(self, key: str) -> asyncio.Future:
        """Register this request as the leader for key."""
        future = asyncio.get_running_loop().create_future()
        self.in_flight[key] = future
        return future

    def complete_in_flight(self, key: str, result: Any = None, error: Optional[BaseException] = None) -> None:
        """Publish the leader's outcome to followers and stop tracking key."""
        future = self.in_flight.pop(key, None)
        if future is None or future.done():
            return
        if isinstance(error, asyncio.CancelledError):
            # The leader went away; followers still get an answer
            error = UpstreamTransportError("Shared upstream call was cancelled", provider="edge")
        if error is not None:
            future.set_exception(error)
            # Followers re-raise it; mark retrieved so an unobserved error is not logged
            future.exception()
        else:
            future.set_result(result)

    # ============================================================
    # Automatic Memory Cleanup
    # ============================================================

    async def _cleanup_loop(self) -> None:
        """Background task that periodically drops expired cache entries."""
        logger.info(f"[CLEANUP] Background cleanup started (interval={self.CLEANUP_INTERVAL}s)")
        while True:
            try:
                await asyncio.sleep(self.CLEANUP_INTERVAL)
                removed = self.cache.cleanup_expired()
                if removed > 0:
                    logger.info(f"[CLEANUP] Removed {removed} expired cache entries")
            except asyncio.CancelledError:
                logger.info("[CLEANUP] Background cleanup stopped")
                break
            except Exception as e:
                logger.error(f"[CLEANUP] Error in cleanup loop: {e}")

    def start_cleanup_task(self) -> None:
        """Start the background cleanup task."""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    def stop_cleanup_task(self) -> None:
        """Stop the background cleanup task."""
        if self._cleanup_task and not self._cleanup_task.done():
            self._cleanup_task.cancel()

    def get_health(self) -> Dict[str, Any]:
        """Snapshot of counters for the health endpoint."""
        return {
            "total_requests": self.stats["total_requests"],
            "session_duration_seconds": self.get_session_duration(),
            "stats": dict(self.stats),
            "cache": self.cache.get_stats(),
            "rate_limiter": self.rate_limiter.get_stats(),
            "gateway": self.gateway.get_stats(),
            "in_flight": len(self.in_flight),
        }


# ============================================================
# FastAPI Dependency Injection Helpers
# ============================================================

def get_app_state_from_request(request) -> "AppState":
    """
    Get AppState from request.

    Usage in routes:
        @router.post("/endpoint")
        async def endpoint(request: Request):
            app_state = get_app_state_from_request(request)
            app_state.increment_stat("total_requests")
    """
    return request.app.state.app_state
