"""
Debounced trigger queue between page events and the orchestrator.

Page mutations arrive in bursts. Each push records the freshest snapshot for
its key; once the page has been quiet for the debounce window only the most
recent entry is handed to the orchestrator, whose admission rules make the
final call.
"""

import asyncio
import logging
from collections import OrderedDict
from typing import Callable, Optional, Set

from straightshot.config import CLIENT
from straightshot.models import VehicleSnapshot
from straightshot.utils.fingerprint import compute_key

logger = logging.getLogger(__name__)


class SnapshotQueue:
    """
    Usage:
        queue = SnapshotQueue(orchestrator, extract=extract_snapshot)
        queue.start()
        queue.notify(url=current_url)   # on every DOM mutation / URL change
    """

    def __init__(
        self,
        orchestrator,
        extract: Optional[Callable[[], VehicleSnapshot]] = None,
        debounce: Optional[float] = None,
    ):
        self.orchestrator = orchestrator
        self.extract = extract
        self.debounce = CLIENT.debounce_seconds if debounce is None else debounce
        self._pending: "OrderedDict[Optional[str], VehicleSnapshot]" = OrderedDict()
        self._wakeup = asyncio.Event()
        self._url: Optional[str] = None
        self._worker: Optional[asyncio.Task] = None
        self._dispatches: Set[asyncio.Task] = set()
        self.stats = {"pushed": 0, "collapsed": 0, "dispatched": 0}

    def __len__(self) -> int:
        return len(self._pending)

    def push(self, snapshot: VehicleSnapshot) -> None:
        """Queue a snapshot; a newer one for the same key replaces it."""
        key = compute_key(snapshot)
        if key in self._pending:
            self.stats["collapsed"] += 1
            del self._pending[key]
        self._pending[key] = snapshot
        self.stats["pushed"] += 1
        self._wakeup.set()

    def notify(self, url: Optional[str] = None) -> None:
        """Page changed. Extracts a snapshot now and records navigation."""
        if url is not None and url != self._url:
            if self._url is not None:
                logger.info("[QUEUE] Navigation detected")
                self.orchestrator.navigate()
            self._url = url
        if self.extract is not None:
            self.push(self.extract())

    async def drain(self) -> bool:
        """Hand the newest pending snapshot to the orchestrator."""
        if not self._pending:
            return False
        _, snapshot = self._pending.popitem(last=True)
        self._pending.clear()
        if self.orchestrator.state.dismissed:
            return False
        self.stats["dispatched"] += 1
        return await self.orchestrator.request_analysis(snapshot)

    async def run(self) -> None:
        while True:
            await self._wakeup.wait()
            # Wait for a quiet period; pushes during the sleep collapse into this round
            while True:
                self._wakeup.clear()
                await asyncio.sleep(self.debounce)
                if not self._wakeup.is_set():
                    break
            task = asyncio.create_task(self.drain())
            self._dispatches.add(task)
            task.add_done_callback(self._dispatches.discard)

    def start(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self.run())

    async def stop(self) -> None:
        for task in [self._worker, *self._dispatches]:
            if task and not task.done():
                task.cancel()
        self._worker = None
