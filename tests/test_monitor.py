"""
Deadswitch Liveness Monitor Tests
"""

import asyncio
from unittest.mock import Mock

import pytest

from deadswitch.core.types import WillStatus
from deadswitch.liveness.clock import LivenessStatus

from conftest import NOW, HOUR


class TestRecompute:
    """Tests for on-demand evaluation."""

    def test_recompute_notifies(self, monitor, clock):
        clock.update(WillStatus(HOUR, NOW))
        callback = Mock()
        monitor.subscribe(callback)

        verdict = monitor.recompute()

        callback.assert_called_once_with(verdict)
        assert monitor.last_verdict is verdict
        assert verdict.status is LivenessStatus.ALIVE

    def test_unsubscribe(self, monitor):
        callback = Mock()
        unsubscribe = monitor.subscribe(callback)
        unsubscribe()
        unsubscribe()
        monitor.recompute()
        callback.assert_not_called()

    def test_failing_subscriber_does_not_block_others(self, monitor):
        good = Mock()
        monitor.subscribe(Mock(side_effect=RuntimeError("boom")))
        monitor.subscribe(good)
        monitor.recompute()
        good.assert_called_once()

    def test_recompute_reflects_time(self, monitor, clock, time_source):
        clock.update(WillStatus(HOUR, NOW))
        assert monitor.recompute().remaining == HOUR
        time_source.advance(HOUR)
        assert monitor.recompute().is_expired


class TestTickLoop:
    """Tests for the background observation loop."""

    @pytest.mark.asyncio
    async def test_start_evaluates_immediately(self, monitor):
        await monitor.start()
        try:
            assert monitor.last_verdict is not None
            assert monitor.running
        finally:
            await monitor.stop()

    @pytest.mark.asyncio
    async def test_ticks(self, monitor):
        callback = Mock()
        monitor.subscribe(callback)
        await monitor.start()
        await asyncio.sleep(0.1)
        await monitor.stop()

        assert monitor.ticks >= 2
        assert callback.call_count == monitor.ticks + 1

    @pytest.mark.asyncio
    async def test_start_stop_idempotent(self, monitor):
        await monitor.start()
        await monitor.start()
        await monitor.stop()
        await monitor.stop()
        assert not monitor.running

    @pytest.mark.asyncio
    async def test_no_ticks_after_stop(self, monitor):
        await monitor.start()
        await monitor.stop()
        ticks = monitor.ticks
        await asyncio.sleep(0.05)
        assert monitor.ticks == ticks

    @pytest.mark.asyncio
    async def test_loop_observes_expiry(self, monitor, clock, time_source):
        clock.update(WillStatus(HOUR, NOW))
        await monitor.start()
        try:
            assert not monitor.last_verdict.is_expired
            time_source.advance(HOUR)
            await asyncio.sleep(0.05)
            assert monitor.last_verdict.is_expired
        finally:
            await monitor.stop()
