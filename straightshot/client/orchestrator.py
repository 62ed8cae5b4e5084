"""
Analysis Orchestrator (page agent)

Decides when a listing snapshot is sent to the edge, keeps overlapping
requests from corrupting each other, tracks free-tier usage and recovers
from rate limits and failures.

States: idle -> requesting -> {ready, errored, rate_limited, gated}

Admission rules, checked in order (force skips all of them):
1. identical key already in flight
2. another request is running
3. key is the last requested key
4. server cool-down from a 429 has not elapsed
5. minimum spacing since the last completed call has not elapsed
6. key is the last completed key and that attempt left data or an error

The automatic retry after a 429 skips rules 2, 3, 4 and 6.

Everything runs on one event loop; a response is applied only if its
sequence number is still the current one.
"""

import asyncio
import logging
import time
from typing import Callable, List, Optional, Tuple

from straightshot.config import ClientConfig, CLIENT, LOADING_TEXT, LOADING_TEXT_SLOW
from straightshot.models import VehicleSnapshot
from straightshot.services.exceptions import (
    ExternalServiceError,
    IncompleteAnalysisError,
    RequestTimeoutError,
)
from straightshot.utils.fingerprint import compute_key
from straightshot.client.api import EdgeResponse
from straightshot.client.state import AnalysisState, AnalysisStatus, missing_narrative_fields
from straightshot.client.storage import ClientStorage, FreeTierCounter

logger = logging.getLogger(__name__)

Listener = Callable[[AnalysisState], None]

ERROR_TIMEOUT = "timeout"
ERROR_REQUEST_FAILED = "request failed"


class AnalysisOrchestrator:
    """
    Usage:
        orchestrator = AnalysisOrchestrator(EdgeClient(), storage=ClientStorage(path))
        orchestrator.subscribe(render_overlay)
        await orchestrator.request_analysis(snapshot)
    """

    def __init__(
        self,
        api,
        storage: Optional[ClientStorage] = None,
        sessions=None,
        config: Optional[ClientConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.api = api
        self.sessions = sessions
        self.config = config or CLIENT
        self.free_tier = FreeTierCounter(storage or ClientStorage())
        self._clock = clock
        self.state = AnalysisState(free_count=self.free_tier.count)
        self.last_skip_reason: Optional[str] = None
        self._listeners: List[Listener] = []
        self._last_snapshot: Optional[VehicleSnapshot] = None
        self._retry_task: Optional[asyncio.Task] = None
        self.stats = {
            "requests": 0,
            "skipped": 0,
            "discarded": 0,
            "rate_limited": 0,
            "errors": 0,
        }

    # ============================================================
    # Listeners
    # ============================================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener with a copy of the state after every change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.state.snapshot())
            except Exception as e:
                logger.error(f"[ORCH] Listener failed: {e}")

    # ============================================================
    # Admission
    # ============================================================

    def admission_check(self, key: str, force: bool = False, retry: bool = False) -> Optional[str]:
        """Return why a request for key would be skipped, or None to proceed."""
        if force:
            return None
        state = self.state
        now = self._clock()

        if key in state.in_flight:
            return "in_flight"
        if state.loading and not retry:
            return "busy"
        if key == state.requested_key and not retry:
            return "already_requested"
        if now < state.next_allowed_at and not retry:
            return "cooldown"
        if state.last_call_at and now - state.last_call_at < self.config.min_request_interval:
            return "spacing"
        if key == state.last_snapshot_key and (state.data is not None or state.error) and not retry:
            return "unchanged"
        return None

    # ============================================================
    # Operations
    # ============================================================

    async def request_analysis(
        self,
        snapshot: VehicleSnapshot,
        force: bool = False,
        retry: bool = False,
    ) -> bool:
        """
        Analyze snapshot unless an admission rule skips it.

        Returns:
            True if a request was issued
        """
        self._last_snapshot = snapshot
        key = compute_key(snapshot)
        if key is None:
            self.last_skip_reason = "no_identity"
            self.stats["skipped"] += 1
            return False

        reason = self.admission_check(key, force=force, retry=retry)
        if reason:
            self.last_skip_reason = reason
            self.stats["skipped"] += 1
            logger.debug(f"[ORCH] Skip {key[:12]}: {reason}")
            return False
        self.last_skip_reason = None

        if force:
            self._cancel_retry()

        state = self.state
        state.sequence_number += 1
        seq = state.sequence_number
        state.status = AnalysisStatus.REQUESTING
        state.loading = True
        state.loading_text = LOADING_TEXT
        state.retrying = retry
        state.requested_key = key
        state.in_flight.add(key)
        self.stats["requests"] += 1
        logger.info(f"[ORCH] Request #{seq} for {key[:12]} (force={force}, retry={retry})")
        self._publish()

        slow_timer = asyncio.create_task(self._advance_loading_text(seq))
        try:
            response, error, validated = await self._attempt(snapshot)
        finally:
            state.in_flight.discard(key)
            slow_timer.cancel()

        if seq != state.sequence_number:
            self.stats["discarded"] += 1
            logger.info(f"[ORCH] Discarding stale result #{seq} (current #{state.sequence_number})")
            return True

        self._apply(snapshot, key, response, error, validated)
        return True

    async def refresh(self, snapshot: Optional[VehicleSnapshot] = None) -> bool:
        """User-initiated re-analysis; bypasses every admission rule."""
        snapshot = snapshot or self._last_snapshot
        if snapshot is None:
            return False
        self.state.dismissed = False
        return await self.request_analysis(snapshot, force=True)

    def dismiss(self) -> None:
        """Hide the overlay until the next navigation."""
        self.state.dismissed = True
        self._publish()

    def navigate(self) -> None:
        """A new page was opened: the overlay may show again."""
        if self.state.dismissed:
            self.state.dismissed = False
            self._publish()

    async def close(self) -> None:
        self._cancel_retry()

    # ============================================================
    # Internals
    # ============================================================

    async def _resolve_auth(self) -> Tuple[Optional[str], bool]:
        """Current access token and whether it is validated. Never blocks the call."""
        if self.sessions is None:
            return None, False
        try:
            session = await self.sessions.current_session()
            if session is None:
                return None, False
            status = await self.sessions.check_status(session)
        except Exception as e:
            logger.warning(f"[ORCH] Auth lookup failed, continuing unauthenticated: {type(e).__name__}: {e}")
            return None, False
        return session.access_token, status.validated

    async def _attempt(
        self, snapshot: VehicleSnapshot
    ) -> Tuple[Optional[EdgeResponse], Optional[str], bool]:
        """Run one network round trip. Returns (response, error, validated)."""
        token, validated = await self._resolve_auth()
        try:
            response = await asyncio.wait_for(
                self.api.analyze(snapshot, token), timeout=self.config.request_timeout
            )
        except (asyncio.TimeoutError, RequestTimeoutError):
            logger.warning(f"[ORCH] Request timed out after {self.config.request_timeout:.0f}s")
            return None, ERROR_TIMEOUT, validated
        except ExternalServiceError as e:
            logger.warning(f"[ORCH] Request failed: {e}")
            return None, ERROR_REQUEST_FAILED, validated
        except Exception as e:
            logger.error(f"[ORCH] Unexpected error during request: {type(e).__name__}: {e}", exc_info=True)
            return None, ERROR_REQUEST_FAILED, validated
        return response, None, validated or response.user_validated

    def _apply(
        self,
        snapshot: VehicleSnapshot,
        key: str,
        response: Optional[EdgeResponse],
        error: Optional[str],
        validated: bool,
    ) -> None:
        state = self.state
        now = self._clock()
        state.loading = False
        state.retrying = False
        state.last_call_at = now
        state.validated = validated

        if response is not None and response.status_code == 429:
            wait = max(self.config.rate_limit_floor, response.retry_after or 0.0)
            state.next_allowed_at = now + wait
            state.status = AnalysisStatus.RATE_LIMITED
            self.stats["rate_limited"] += 1
            logger.info(f"[ORCH] Rate limited, retrying in {wait:.0f}s")
            self._schedule_retry(snapshot, key, max(wait, self.config.min_request_interval))
            self._publish()
            return

        if error is None and not response.ok:
            error = ERROR_REQUEST_FAILED
            logger.warning(f"[ORCH] Edge returned {response.status_code}")

        if error is None:
            missing = missing_narrative_fields(response.payload)
            if missing:
                exc = IncompleteAnalysisError(missing)
                logger.warning(f"[ORCH] {exc.message}: {', '.join(missing)}")
                error = exc.message

        state.last_snapshot_key = key
        if error is not None:
            # Keep whatever result is already on screen
            state.error = error
            state.status = AnalysisStatus.ERRORED
            self.stats["errors"] += 1
            self._publish()
            return

        state.data = response.payload
        state.error = None
        state.ready = True
        if not validated:
            self.free_tier.record(key)
        state.free_count = self.free_tier.count
        state.gated = not validated and state.free_count >= self.config.free_limit
        state.status = AnalysisStatus.GATED if state.gated else AnalysisStatus.READY
        logger.info(
            f"[ORCH] Ready {key[:12]} (validated={validated}, free={state.free_count}, gated={state.gated})"
        )
        self._publish()

    async def _advance_loading_text(self, seq: int) -> None:
        await asyncio.sleep(self.config.loading_slow_after)
        if self.state.sequence_number == seq and self.state.loading:
            self.state.loading_text = LOADING_TEXT_SLOW
            self._publish()

    def _schedule_retry(self, snapshot: VehicleSnapshot, key: str, delay: float) -> None:
        self._cancel_retry()
        self._retry_task = asyncio.create_task(self._retry_after(snapshot, key, delay))

    async def _retry_after(self, snapshot: VehicleSnapshot, key: str, delay: float) -> None:
        await asyncio.sleep(delay)
        self._retry_task = None
        # A newer listing took over while waiting
        if self.state.requested_key != key:
            return
        await self.request_analysis(snapshot, retry=True)

    def _cancel_retry(self) -> None:
        if self._retry_task and not self._retry_task.done():
            self._retry_task.cancel()
        self._retry_task = None
