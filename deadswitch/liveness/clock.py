"""
Deadswitch Liveness Clock

Turns (last_active, heartbeat_interval, now) into a remaining time and an
alive/expired verdict:

    remaining = max(0, last_active + interval - now)
    expired   = remaining == 0

A missing will, bad inputs or an unavailable time source all yield the
NO_PROTOCOL sentinel (-1). The clock never fails towards "expired";
authoritative expiration is enforced by the registry.
"""

from __future__ import annotations
import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import ntplib

from deadswitch.constants import (
    NO_PROTOCOL_SENTINEL,
    EXPIRED_REMAINING,
    SECONDS_PER_DAY,
    SECONDS_PER_HOUR,
    SECONDS_PER_MINUTE,
    DEFAULT_NTP_SERVER,
    NTP_QUERY_TIMEOUT_SEC,
)
from deadswitch.core.types import WillRecord, WillStatus, InheritanceClaim

logger = logging.getLogger(__name__)

TimeSource = Callable[[], int]


class LivenessStatus(Enum):
    NO_PROTOCOL = "no_protocol"
    ALIVE = "alive"
    EXPIRED = "expired"


@dataclass(frozen=True, slots=True)
class LivenessVerdict:
    """Result of one clock evaluation."""
    remaining: int
    status: LivenessStatus
    evaluated_at: Optional[int] = None

    @property
    def is_expired(self) -> bool:
        return self.status is LivenessStatus.EXPIRED

    @property
    def has_protocol(self) -> bool:
        return self.status is not LivenessStatus.NO_PROTOCOL

    @classmethod
    def no_protocol(cls, evaluated_at: Optional[int] = None) -> LivenessVerdict:
        return cls(remaining=NO_PROTOCOL_SENTINEL, status=LivenessStatus.NO_PROTOCOL, evaluated_at=evaluated_at)


def compute_time_remaining(last_active: int, interval: int, now: int) -> int:
    """Seconds until expiration, saturating at 0."""
    return max(EXPIRED_REMAINING, last_active + interval - now)


def evaluate_liveness(
    last_active: Optional[int],
    interval: Optional[int],
    now: Optional[int]
) -> LivenessVerdict:
    """
    Classify a will as alive or expired.

    Args:
        last_active: Last heartbeat timestamp, None if no will
        interval: Heartbeat interval in seconds, None if no will
        now: Current timestamp, None if unavailable

    Returns:
        LivenessVerdict; NO_PROTOCOL when any input is missing or invalid
    """
    if last_active is None or interval is None or now is None:
        return LivenessVerdict.no_protocol(now)
    if interval <= 0 or last_active < 0:
        logger.warning(f"Invalid liveness inputs: last_active={last_active}, interval={interval}")
        return LivenessVerdict.no_protocol(now)

    remaining = compute_time_remaining(last_active, interval, now)
    status = LivenessStatus.EXPIRED if remaining == EXPIRED_REMAINING else LivenessStatus.ALIVE
    return LivenessVerdict(remaining=remaining, status=status, evaluated_at=now)


def project_claim(record: WillRecord, now: int) -> InheritanceClaim:
    """Beneficiary-side projection of a will at time now."""
    remaining = compute_time_remaining(
        record.last_active_timestamp, record.heartbeat_interval_seconds, now
    )
    return InheritanceClaim(
        owner_identity=record.owner_identity,
        beneficiary_address=record.beneficiary_address,
        heartbeat_interval_seconds=record.heartbeat_interval_seconds,
        last_active_timestamp=record.last_active_timestamp,
        time_remaining_seconds=remaining,
        is_expired=remaining == EXPIRED_REMAINING,
    )


def format_remaining(seconds: int) -> str:
    """
    Render remaining time as DDD:HH:MM:SS.

    The NO_PROTOCOL sentinel renders as "NO PROTOCOL" so it can never be
    mistaken for an expired countdown.
    """
    if seconds < 0:
        return "NO PROTOCOL"
    days, rest = divmod(seconds, SECONDS_PER_DAY)
    hours, rest = divmod(rest, SECONDS_PER_HOUR)
    minutes, secs = divmod(rest, SECONDS_PER_MINUTE)
    return f"{days:03d}:{hours:02d}:{minutes:02d}:{secs:02d}"


# ==============================================================================
# Time sources
# ==============================================================================

class SystemTimeSource:
    """Local wall clock."""

    def __call__(self) -> int:
        return int(time.time())


class FixedTimeSource:
    """Manually driven clock for tests and demos."""

    def __init__(self, now: int = 0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def set(self, now: int) -> None:
        self.now = now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


class NtpTimeSource:
    """
    Wall clock corrected by an NTP offset.

    Reports the raw wall clock until the first successful sync(). A
    failed sync keeps the previous offset.
    """

    def __init__(self, server: str = DEFAULT_NTP_SERVER, timeout: float = NTP_QUERY_TIMEOUT_SEC):
        self.server = server
        self.timeout = timeout
        self.offset: float = 0.0
        self.last_sync: Optional[float] = None
        self._client = ntplib.NTPClient()

    def __call__(self) -> int:
        return int(time.time() + self.offset)

    async def sync(self) -> bool:
        """Query the NTP server and update the offset. Returns success."""
        loop = asyncio.get_running_loop()
        try:
            response = await asyncio.wait_for(
                loop.run_in_executor(
                    None,
                    lambda: self._client.request(self.server, version=4, timeout=self.timeout)
                ),
                timeout=self.timeout + 1.0
            )
        except (ntplib.NTPException, OSError, asyncio.TimeoutError) as e:
            logger.warning(f"NTP sync with {self.server} failed, keeping offset {self.offset:+.3f}s: {e}")
            return False

        self.offset = response.offset
        self.last_sync = time.time()
        logger.debug(f"NTP offset from {self.server}: {self.offset:+.3f}s")
        return True


# ==============================================================================
# Clock
# ==============================================================================

class LivenessClock:
    """
    Liveness engine for the owner's own will.

    Holds the latest will status fetched from the registry and evaluates
    it against the time source on demand.
    """

    def __init__(self, time_source: Optional[TimeSource] = None):
        self.time_source: TimeSource = time_source or SystemTimeSource()
        self.status: Optional[WillStatus] = None

    def update(self, status: Optional[WillStatus]) -> None:
        """Replace the will status; None means no will is registered."""
        self.status = status

    def now(self) -> Optional[int]:
        try:
            return int(self.time_source())
        except Exception as e:
            logger.warning(f"Time source unavailable, failing closed: {e}")
            return None

    def evaluate(self) -> LivenessVerdict:
        now = self.now()
        if self.status is None:
            return LivenessVerdict.no_protocol(now)
        return evaluate_liveness(
            self.status.last_active_timestamp,
            self.status.heartbeat_interval_seconds,
            now,
        )
