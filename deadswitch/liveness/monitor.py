"""
Deadswitch Liveness Monitor

Re-evaluates the liveness clock on a fixed cadence while observed and on
demand after state-changing actions (heartbeat, registry re-fetch).
"""

from __future__ import annotations
import asyncio
import logging
from typing import Callable, List, Optional

from deadswitch.constants import LIVENESS_TICK_INTERVAL_SEC
from deadswitch.liveness.clock import LivenessClock, LivenessVerdict

logger = logging.getLogger(__name__)

Subscriber = Callable[[LivenessVerdict], None]


class LivenessMonitor:
    """Background 1 Hz observation loop over a LivenessClock."""

    def __init__(self, clock: LivenessClock, tick_interval: float = LIVENESS_TICK_INTERVAL_SEC):
        self.clock = clock
        self.tick_interval = tick_interval
        self.last_verdict: Optional[LivenessVerdict] = None
        self.ticks = 0
        self._subscribers: List[Subscriber] = []
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a verdict callback; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def recompute(self) -> LivenessVerdict:
        """Evaluate the clock now and notify subscribers."""
        verdict = self.clock.evaluate()
        self.last_verdict = verdict
        for callback in list(self._subscribers):
            try:
                callback(verdict)
            except Exception:
                logger.exception("Liveness subscriber failed")
        return verdict

    async def start(self) -> None:
        """Start ticking. Idempotent."""
        if self._running:
            return
        self._running = True
        self.recompute()
        self._task = asyncio.create_task(self._tick_loop())
        logger.debug(f"Liveness monitor started ({self.tick_interval}s tick)")

    async def stop(self) -> None:
        """Stop ticking. Idempotent."""
        if not self._running:
            return
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.debug("Liveness monitor stopped")

    async def _tick_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.tick_interval)
            self.ticks += 1
            self.recompute()
