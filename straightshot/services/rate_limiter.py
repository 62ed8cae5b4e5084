"""
Per-client rate limiter for the /analyze endpoint.

Two independent constraints must both pass:
- Spacing: a hard minimum interval between accepted requests.
- Quota: a sliding log of accepted timestamps capped per trailing window.

The store is a plain in-memory dict owned by one RateLimiter instance. It is
NOT shared across worker processes, hosts or regions: behind a multi-instance
deployment each instance enforces its own limits, so a client can be admitted
up to N times the configured quota. Treat it as best-effort abuse protection,
not a correctness guarantee. Concurrent checks for the same client can at
worst over-admit slightly; they never corrupt an entry.
"""

import time
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from straightshot.config import RateLimitConfig, RATE_LIMIT

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class RateLimitEntry:
    """Admission history for one client identifier"""
    last: int = 0
    recent: List[int] = field(default_factory=list)


@dataclass
class RateDecision:
    """Outcome of one admission check"""
    allowed: bool
    retry_after_ms: int = 0
    reason: str = ""

    @property
    def retry_after_seconds(self) -> int:
        """Whole seconds for the Retry-After header, never below 1."""
        return max(1, -(-self.retry_after_ms // 1000))


class RateLimiter:
    """
    Dual-window admission control keyed by client identifier.

    Usage:
        limiter = RateLimiter()
        decision = limiter.admit(client_ip)
        if not decision.allowed:
            raise RateLimitError("analyze", decision.retry_after_seconds)
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], int] = _now_ms,
    ):
        self.config = config or RATE_LIMIT
        self._clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}
        self._stats = {
            "allowed": 0,
            "denied_spacing": 0,
            "denied_quota": 0,
        }

    def admit(self, client_id: str) -> RateDecision:
        """Check and, on success, record a request for client_id."""
        now = self._clock()
        entry = self._entries.get(client_id) or RateLimitEntry()
        min_interval = self.config.min_interval_ms
        window = self.config.window_ms

        # Hard minimum interval
        if entry.last and now - entry.last < min_interval:
            self._stats["denied_spacing"] += 1
            retry = min_interval - (now - entry.last)
            logger.info(f"[RATE] {client_id}: spacing, retry in {retry}ms")
            return RateDecision(allowed=False, retry_after_ms=retry, reason="spacing")

        # Sliding window
        entry.recent = [t for t in entry.recent if now - t < window]
        if len(entry.recent) >= self.config.max_requests:
            self._stats["denied_quota"] += 1
            earliest = entry.recent[0]
            retry = window - (now - earliest)
            logger.warning(
                f"[RATE] {client_id}: quota {len(entry.recent)}/{self.config.max_requests}, "
                f"retry in {retry}ms"
            )
            self._entries[client_id] = entry
            return RateDecision(allowed=False, retry_after_ms=retry, reason="quota")

        entry.last = now
        entry.recent.append(now)
        self._entries[client_id] = entry
        self._stats["allowed"] += 1
        return RateDecision(allowed=True)

    def get_entry(self, client_id: str) -> Optional[RateLimitEntry]:
        return self._entries.get(client_id)

    def get_stats(self) -> Dict[str, int]:
        return {
            "clients": len(self._entries),
            **self._stats,
        }
