"""
Deadswitch Liveness Engine
"""

from deadswitch.liveness.clock import (
    LivenessClock,
    LivenessStatus,
    LivenessVerdict,
    SystemTimeSource,
    FixedTimeSource,
    NtpTimeSource,
    compute_time_remaining,
    evaluate_liveness,
    project_claim,
    format_remaining,
)
from deadswitch.liveness.monitor import LivenessMonitor

__all__ = [
    "LivenessClock",
    "LivenessStatus",
    "LivenessVerdict",
    "LivenessMonitor",
    "SystemTimeSource",
    "FixedTimeSource",
    "NtpTimeSource",
    "compute_time_remaining",
    "evaluate_liveness",
    "project_claim",
    "format_remaining",
]
