"""
Deadswitch Application Layer
"""

from deadswitch.app.config import (
    ClientConfig,
    RegistryConfig,
    CacheConfig,
    LivenessConfig,
    WillConfig,
    LogConfig,
    setup_logging,
)
from deadswitch.app.service import ProtocolService, DataSlot, SlotStatus, RefreshKind, BalanceInfo
from deadswitch.app.client import ProtocolClient

__all__ = [
    "ClientConfig",
    "RegistryConfig",
    "CacheConfig",
    "LivenessConfig",
    "WillConfig",
    "LogConfig",
    "setup_logging",
    "ProtocolService",
    "DataSlot",
    "SlotStatus",
    "RefreshKind",
    "BalanceInfo",
    "ProtocolClient",
]
