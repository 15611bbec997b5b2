"""
Deadswitch Core Types

Will records, inheritance claims, derived addresses and the view enum.
Timestamps are integer seconds since the Unix epoch.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Any, Dict

from deadswitch.constants import (
    NETWORK_MAINNET,
    NETWORK_TESTNET,
    ADDRESS_CACHE_PREFIX,
)
from deadswitch.errors import InvalidParameterError, InvalidWillPayload


NETWORKS = (NETWORK_MAINNET, NETWORK_TESTNET)


def normalize_network(network: str) -> str:
    """Return the canonical network name or raise InvalidParameterError."""
    name = (network or "").strip().lower()
    if name not in NETWORKS:
        raise InvalidParameterError("network", f"expected one of {NETWORKS}, got {network!r}")
    return name


class View(Enum):
    """Application views. Exactly one is active at any instant."""
    UNAUTHENTICATED = "unauthenticated"
    PROTOCOL_SETUP = "protocol_setup"
    MONITOR = "monitor"
    CRITICAL_ALERT = "critical_alert"

    @property
    def authenticated(self) -> bool:
        return self is not View.UNAUTHENTICATED


@dataclass(frozen=True, slots=True)
class Identity:
    """Verified caller identity handed over by the identity provider."""
    principal: str
    token: str = ""

    def __repr__(self) -> str:
        # Never expose the bearer token
        return f"Identity(principal={self.principal!r}, token=<redacted>)"


@dataclass(frozen=True, slots=True)
class WillRecord:
    """
    One registered dead-man's-switch protocol instance.

    The interval is fixed at registration; last_active only moves forward
    and only through a heartbeat. Expiration is derived, never stored.
    """
    owner_identity: str
    beneficiary_address: str
    heartbeat_interval_seconds: int
    last_active_timestamp: int

    def __post_init__(self):
        if self.heartbeat_interval_seconds <= 0:
            raise InvalidWillPayload(
                "heartbeat interval",
                f"must be positive, got {self.heartbeat_interval_seconds}"
            )

    def with_heartbeat(self, timestamp: int) -> WillRecord:
        """Return a copy with last_active advanced to timestamp (never backwards)."""
        return WillRecord(
            owner_identity=self.owner_identity,
            beneficiary_address=self.beneficiary_address,
            heartbeat_interval_seconds=self.heartbeat_interval_seconds,
            last_active_timestamp=max(self.last_active_timestamp, timestamp),
        )

    def status(self) -> WillStatus:
        return WillStatus(
            heartbeat_interval_seconds=self.heartbeat_interval_seconds,
            last_active_timestamp=self.last_active_timestamp,
        )


@dataclass(frozen=True, slots=True)
class WillStatus:
    """The owner's view of their own will, as returned by the registry."""
    heartbeat_interval_seconds: int
    last_active_timestamp: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "heartbeat_seconds": self.heartbeat_interval_seconds,
            "last_active": self.last_active_timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> WillStatus:
        return cls(
            heartbeat_interval_seconds=int(data["heartbeat_seconds"]),
            last_active_timestamp=int(data["last_active"]),
        )


@dataclass(frozen=True, slots=True)
class InheritanceClaim:
    """
    Read-only projection of a will, as seen by its beneficiary.

    is_expired holds exactly when time_remaining_seconds is 0.
    """
    owner_identity: str
    beneficiary_address: str
    heartbeat_interval_seconds: int
    last_active_timestamp: int
    time_remaining_seconds: int
    is_expired: bool

    def __post_init__(self):
        if self.is_expired != (self.time_remaining_seconds <= 0):
            raise InvalidParameterError(
                "is_expired",
                f"inconsistent with time_remaining_seconds={self.time_remaining_seconds}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner_principal": self.owner_identity,
            "beneficiary_btc_address": self.beneficiary_address,
            "heartbeat_seconds": self.heartbeat_interval_seconds,
            "last_active": self.last_active_timestamp,
            "time_remaining": self.time_remaining_seconds,
            "is_expired": self.is_expired,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> InheritanceClaim:
        """
        Build a claim from registry JSON.

        The registry is authoritative on expiration: if it reports the will
        as expired the remaining time is forced to 0, and a remaining time of
        0 is always expired.
        """
        remaining = max(0, int(data["time_remaining"]))
        expired = bool(data.get("is_expired", False)) or remaining == 0
        return cls(
            owner_identity=str(data["owner_principal"]),
            beneficiary_address=str(data["beneficiary_btc_address"]),
            heartbeat_interval_seconds=int(data["heartbeat_seconds"]),
            last_active_timestamp=int(data["last_active"]),
            time_remaining_seconds=0 if expired else remaining,
            is_expired=expired,
        )


@dataclass(frozen=True, slots=True)
class DerivedAddress:
    """Cached mapping (public key hex, network) -> address."""
    public_key_hex: str
    network: str
    address: str

    @property
    def cache_key(self) -> str:
        return derived_address_cache_key(self.public_key_hex, self.network)


def derived_address_cache_key(public_key_hex: str, network: str) -> str:
    """Cache key covering both the key and the network."""
    return f"{ADDRESS_CACHE_PREFIX}{network}:{public_key_hex.lower()}"


@dataclass(frozen=True, slots=True)
class AddressSet:
    """All address forms generable for one key."""
    network: str
    p2pkh: str                       # Legacy (1 / m, n)
    p2wpkh: Optional[str] = None     # Native SegWit (bc1 / tb1)
    p2sh: Optional[str] = None       # P2SH-wrapped SegWit (3 / 2)

    @property
    def preferred(self) -> str:
        return self.p2wpkh or self.p2pkh

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "network": self.network,
            "p2pkh": self.p2pkh,
            "p2wpkh": self.p2wpkh,
            "p2sh": self.p2sh,
        }


class CustodyKeyKind(Enum):
    RAW_KEY = "raw_key"
    ADDRESS = "address"


@dataclass(frozen=True, slots=True)
class CustodyKey:
    """
    Classified custody key string: either a raw public key (hex) or an
    already-encoded address that must be passed through unchanged.
    """
    kind: CustodyKeyKind
    value: str
    network: Optional[str] = None    # set for addresses

    @property
    def is_address(self) -> bool:
        return self.kind is CustodyKeyKind.ADDRESS

    @property
    def is_raw_key(self) -> bool:
        return self.kind is CustodyKeyKind.RAW_KEY
