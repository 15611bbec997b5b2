"""
Deadswitch Liveness Clock Tests
"""

from unittest.mock import Mock, patch

import ntplib
import pytest

from deadswitch.constants import NO_PROTOCOL_SENTINEL
from deadswitch.core.types import WillRecord, WillStatus
from deadswitch.liveness.clock import (
    FixedTimeSource,
    LivenessClock,
    LivenessStatus,
    LivenessVerdict,
    NtpTimeSource,
    SystemTimeSource,
    compute_time_remaining,
    evaluate_liveness,
    format_remaining,
    project_claim,
)

from conftest import NOW, HOUR


# =============================================================================
# Pure evaluation
# =============================================================================

class TestComputeTimeRemaining:
    """Tests for the remaining-time formula."""

    def test_fresh_heartbeat(self):
        assert compute_time_remaining(NOW, HOUR, NOW) == HOUR

    def test_partial(self):
        assert compute_time_remaining(NOW, HOUR, NOW + 600) == HOUR - 600

    def test_saturates_at_zero(self):
        assert compute_time_remaining(NOW, HOUR, NOW + 10 * HOUR) == 0

    def test_monotone_non_increasing(self):
        values = [compute_time_remaining(NOW, HOUR, NOW + t) for t in range(0, 2 * HOUR, 97)]
        assert values == sorted(values, reverse=True)
        assert all(v >= 0 for v in values)


class TestEvaluateLiveness:
    """Tests for the alive/expired verdict."""

    def test_alive(self):
        verdict = evaluate_liveness(NOW, HOUR, NOW + 1)
        assert verdict.status is LivenessStatus.ALIVE
        assert verdict.remaining == HOUR - 1
        assert not verdict.is_expired
        assert verdict.has_protocol

    def test_one_second_before_deadline(self):
        verdict = evaluate_liveness(NOW, HOUR, NOW + HOUR - 1)
        assert verdict.remaining == 1
        assert not verdict.is_expired

    def test_exact_deadline_is_expired(self):
        verdict = evaluate_liveness(NOW, HOUR, NOW + HOUR)
        assert verdict.remaining == 0
        assert verdict.is_expired

    def test_past_deadline(self):
        verdict = evaluate_liveness(NOW, HOUR, NOW + HOUR + 5)
        assert verdict.status is LivenessStatus.EXPIRED
        assert verdict.remaining == 0

    def test_no_will(self):
        verdict = evaluate_liveness(None, None, NOW)
        assert verdict.status is LivenessStatus.NO_PROTOCOL
        assert verdict.remaining == NO_PROTOCOL_SENTINEL
        assert not verdict.is_expired
        assert not verdict.has_protocol

    def test_no_time(self):
        verdict = evaluate_liveness(NOW, HOUR, None)
        assert verdict.remaining == NO_PROTOCOL_SENTINEL
        assert not verdict.is_expired

    @pytest.mark.parametrize("last_active,interval", [(NOW, 0), (NOW, -5), (-1, HOUR)])
    def test_invalid_inputs_fail_closed(self, last_active, interval):
        verdict = evaluate_liveness(last_active, interval, NOW)
        assert verdict.status is LivenessStatus.NO_PROTOCOL
        assert not verdict.is_expired

    def test_heartbeat_restores_alive(self):
        expired = evaluate_liveness(NOW, HOUR, NOW + 2 * HOUR)
        revived = evaluate_liveness(NOW + 2 * HOUR, HOUR, NOW + 2 * HOUR)
        assert expired.is_expired
        assert not revived.is_expired
        assert revived.remaining == HOUR

    def test_evaluated_at(self):
        assert evaluate_liveness(NOW, HOUR, NOW + 3).evaluated_at == NOW + 3


class TestProjectClaim:
    """Tests for beneficiary projections."""

    def test_alive_claim(self):
        claim = project_claim(WillRecord("alice", "tb1q", HOUR, NOW), NOW + 60)
        assert claim.time_remaining_seconds == HOUR - 60
        assert not claim.is_expired

    def test_expired_claim(self):
        claim = project_claim(WillRecord("alice", "tb1q", HOUR, NOW), NOW + HOUR)
        assert claim.time_remaining_seconds == 0
        assert claim.is_expired


class TestFormatRemaining:
    """Tests for DDD:HH:MM:SS rendering."""

    def test_zero(self):
        assert format_remaining(0) == "000:00:00:00"

    def test_mixed(self):
        assert format_remaining(90 * 86400 + 3 * 3600 + 4 * 60 + 5) == "090:03:04:05"

    def test_sentinel(self):
        assert format_remaining(NO_PROTOCOL_SENTINEL) == "NO PROTOCOL"


# =============================================================================
# Time sources
# =============================================================================

class TestTimeSources:
    """Tests for the injectable time sources."""

    def test_system(self):
        with patch("deadswitch.liveness.clock.time.time", return_value=1234.9):
            assert SystemTimeSource()() == 1234

    def test_fixed(self):
        source = FixedTimeSource(NOW)
        assert source() == NOW
        assert source.advance(5) == NOW + 5
        source.set(10)
        assert source() == 10

    @pytest.mark.asyncio
    async def test_ntp_sync_applies_offset(self):
        source = NtpTimeSource("ntp.example")
        source._client = Mock()
        source._client.request.return_value = Mock(offset=30.0)

        assert await source.sync()
        assert source.offset == 30.0
        assert source.last_sync is not None
        with patch("deadswitch.liveness.clock.time.time", return_value=1000.0):
            assert source() == 1030

    @pytest.mark.asyncio
    async def test_ntp_failure_keeps_offset(self):
        source = NtpTimeSource("ntp.example")
        source.offset = 2.0
        source._client = Mock()
        source._client.request.side_effect = ntplib.NTPException("no response")

        assert not await source.sync()
        assert source.offset == 2.0
        assert source.last_sync is None

    @pytest.mark.asyncio
    async def test_ntp_socket_error(self):
        source = NtpTimeSource("ntp.example")
        source._client = Mock()
        source._client.request.side_effect = OSError("unreachable")
        assert not await source.sync()

    def test_ntp_unsynced_reports_wall_clock(self):
        with patch("deadswitch.liveness.clock.time.time", return_value=500.0):
            assert NtpTimeSource()() == 500


# =============================================================================
# Clock
# =============================================================================

class TestLivenessClock:
    """Tests for the stateful clock."""

    def test_no_status_is_no_protocol(self, clock):
        assert clock.evaluate().status is LivenessStatus.NO_PROTOCOL

    def test_update_and_evaluate(self, clock, time_source):
        clock.update(WillStatus(HOUR, NOW))
        time_source.advance(100)
        verdict = clock.evaluate()
        assert verdict.remaining == HOUR - 100
        assert verdict.status is LivenessStatus.ALIVE

    def test_expires_with_time(self, clock, time_source):
        clock.update(WillStatus(HOUR, NOW))
        time_source.advance(HOUR)
        assert clock.evaluate().is_expired

    def test_update_none_clears(self, clock):
        clock.update(WillStatus(HOUR, NOW))
        clock.update(None)
        assert clock.evaluate() == LivenessVerdict.no_protocol(NOW)

    def test_failing_time_source_fails_closed(self):
        def broken() -> int:
            raise OSError("clock unavailable")

        clock = LivenessClock(broken)
        clock.update(WillStatus(HOUR, 0))
        verdict = clock.evaluate()
        assert verdict.remaining == NO_PROTOCOL_SENTINEL
        assert not verdict.is_expired
        assert clock.now() is None
