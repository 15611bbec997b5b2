"""
Deadswitch Protocol Service

Data refresh and protocol operations on top of the registry backend.

Four data slots are kept, one per refresh kind (address, balance, will
status, claims). Refreshes of the same kind are coalesced; a forced
refresh issues a new call and the most recently issued result wins.
Remote failures during refresh put the slot into an explicit error state
and never propagate. Heartbeat, registration and claim submission raise
their failures to the caller and are never retried.
"""

from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set, Union

from deadswitch.app.config import ClientConfig
from deadswitch.constants import BALANCE_CACHE_PREFIX
from deadswitch.core.types import InheritanceClaim, WillStatus, derived_address_cache_key
from deadswitch.crypto.address import AddressCodec, classify_custody_key, detect_address_network
from deadswitch.errors import (
    AccessDenied,
    AddressDerivationError,
    DeadSwitchError,
    InvalidWillPayload,
    NotAuthenticated,
    RemoteCallFailed,
)
from deadswitch.liveness.clock import LivenessClock, LivenessVerdict
from deadswitch.liveness.monitor import LivenessMonitor
from deadswitch.registry.backend import RegistryBackend
from deadswitch.storage.cache import CacheStore, MemoryCache

logger = logging.getLogger(__name__)


class RefreshKind(Enum):
    ADDRESS = "address"
    BALANCE = "balance"
    WILL_STATUS = "will_status"
    CLAIMS = "claims"


class SlotStatus(Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass
class DataSlot:
    """
    Display state of one refresh kind.

    On error the last good value stays in ``value`` but ``status`` is
    ERROR and ``error`` holds the message; ``raw`` carries the unconverted
    input when an address conversion failed.
    """
    kind: RefreshKind
    value: Any = None
    error: Optional[str] = None
    raw: Optional[str] = None
    status: SlotStatus = SlotStatus.IDLE
    updated_at: Optional[int] = None
    applied_issue: int = 0


@dataclass(frozen=True, slots=True)
class BalanceInfo:
    address: str
    satoshis: int
    fetched_at: int
    from_cache: bool = False


SlotListener = Callable[[DataSlot], None]

# Errors that a refresh turns into a slot error instead of raising
REFRESH_ERRORS = (RemoteCallFailed, NotAuthenticated, AddressDerivationError)


class ProtocolService:
    """Refresh orchestration, caching policy and protocol operations."""

    def __init__(
        self,
        backend: RegistryBackend,
        cache: Optional[CacheStore] = None,
        clock: Optional[LivenessClock] = None,
        monitor: Optional[LivenessMonitor] = None,
        config: Optional[ClientConfig] = None,
    ):
        self.backend = backend
        self.cache = cache or MemoryCache()
        self.clock = clock or LivenessClock()
        self.monitor = monitor
        self.config = config or ClientConfig()
        self.codec = AddressCodec(self.config.network)

        self.slots: Dict[RefreshKind, DataSlot] = {kind: DataSlot(kind) for kind in RefreshKind}
        self._issued: Dict[RefreshKind, int] = {kind: 0 for kind in RefreshKind}
        self._inflight: Dict[RefreshKind, asyncio.Task] = {}
        self._listeners: List[SlotListener] = []
        self._claimed: Set[str] = set()

    # ------------------------------------------------------------------
    # Slot access
    # ------------------------------------------------------------------

    def on_update(self, listener: SlotListener) -> None:
        self._listeners.append(listener)

    @property
    def address(self) -> Optional[str]:
        return self.slots[RefreshKind.ADDRESS].value

    @property
    def balance(self) -> Optional[BalanceInfo]:
        return self.slots[RefreshKind.BALANCE].value

    @property
    def will_status(self) -> Optional[WillStatus]:
        return self.slots[RefreshKind.WILL_STATUS].value

    @property
    def claims(self) -> List[InheritanceClaim]:
        return self.slots[RefreshKind.CLAIMS].value or []

    def reset(self) -> None:
        """
        Drop per-identity state.

        Refreshes still in flight are no longer joined by new requests and
        their results are discarded.
        """
        for kind in RefreshKind:
            self.slots[kind] = DataSlot(kind, applied_issue=self._issued[kind])
        self._inflight.clear()
        self._claimed.clear()

    def balance_is_stale(self) -> bool:
        """True when the shown balance is older than the freshness window."""
        info = self.balance
        now = self.clock.now()
        if info is None or now is None:
            return True
        return now - info.fetched_at >= self.config.cache.balance_ttl_sec

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh(self, kind: RefreshKind, force: bool = False) -> DataSlot:
        """
        Refresh one data kind.

        A non-forced request while one of the same kind is in flight waits
        for the in-flight one instead of issuing a new call.
        """
        inflight = self._inflight.get(kind)
        if inflight is not None and not inflight.done() and not force:
            logger.debug(f"Coalescing {kind.value} refresh")
            await asyncio.shield(inflight)
            return self.slots[kind]

        self._issued[kind] += 1
        issue = self._issued[kind]
        self.slots[kind].status = SlotStatus.LOADING
        task = asyncio.create_task(self._run_refresh(kind, issue, force))
        self._inflight[kind] = task
        try:
            await asyncio.shield(task)
        finally:
            if self._inflight.get(kind) is task and task.done():
                del self._inflight[kind]
        return self.slots[kind]

    async def retry(self, kind: RefreshKind) -> DataSlot:
        """Manual retry after an error: always a fresh call."""
        return await self.refresh(kind, force=True)

    async def refresh_monitor_data(self, force: bool = False) -> None:
        """Address, will status, then the balance of the address."""
        await asyncio.gather(
            self.refresh(RefreshKind.ADDRESS, force=force),
            self.refresh(RefreshKind.WILL_STATUS, force=force),
        )
        await self.refresh(RefreshKind.BALANCE, force=force)

    async def refresh_claims(self, force: bool = False) -> DataSlot:
        return await self.refresh(RefreshKind.CLAIMS, force=force)

    async def _run_refresh(self, kind: RefreshKind, issue: int, force: bool) -> None:
        loaders = {
            RefreshKind.ADDRESS: self._load_address,
            RefreshKind.BALANCE: self._load_balance,
            RefreshKind.WILL_STATUS: self._load_will_status,
            RefreshKind.CLAIMS: self._load_claims,
        }

        try:
            value = await loaders[kind](force)
        except REFRESH_ERRORS as e:
            slot = self.slots[kind]
            if issue <= slot.applied_issue:
                return
            slot.applied_issue = issue
            slot.status = SlotStatus.ERROR
            slot.error = e.message
            slot.raw = e.details.get("raw") if isinstance(e.details, dict) else None
            logger.warning(f"Refresh of {kind.value} failed: {e.message}")
            if kind is RefreshKind.WILL_STATUS:
                # Unavailable: fail closed to "no protocol"
                self._apply_will_status(None)
            self._notify(slot)
            return

        slot = self.slots[kind]
        if issue <= slot.applied_issue:
            logger.debug(f"Discarding superseded {kind.value} result (issue {issue})")
            return
        slot.applied_issue = issue
        slot.value = value
        slot.error = None
        slot.raw = None
        slot.status = SlotStatus.READY
        slot.updated_at = self.clock.now()
        if kind is RefreshKind.WILL_STATUS:
            self._apply_will_status(value)
        self._notify(slot)

    def _notify(self, slot: DataSlot) -> None:
        for listener in list(self._listeners):
            listener(slot)

    async def _load_address(self, force: bool) -> str:
        custody = await self.backend.get_custody_public_key()
        try:
            key = classify_custody_key(custody)
            if key.is_address:
                return key.value

            cache_key = derived_address_cache_key(key.value, self.codec.network)
            if not force:
                entry = await self.cache.get(cache_key)
                if entry is not None:
                    logger.debug(f"Address cache hit for {key.value[:16]}...")
                    return entry.value

            address = self.codec.resolve(key)
        except AddressDerivationError as e:
            e.details = {**(e.details or {}), "raw": custody}
            raise

        await self.cache.set(cache_key, address, self.clock.now() or 0)
        return address

    async def _load_balance(self, force: bool) -> BalanceInfo:
        address = self.address
        if address is None:
            await self.refresh(RefreshKind.ADDRESS)
            address = self.address
        if address is None:
            raise AddressDerivationError("no custody address available")

        key = f"{BALANCE_CACHE_PREFIX}{address}"
        now = self.clock.now()
        if not force and now is not None:
            entry = await self.cache.get_fresh(key, self.config.cache.balance_ttl_sec, now)
            if entry is not None:
                logger.debug(f"Balance cache hit for {address}")
                return BalanceInfo(address, int(entry.value), entry.stored_at, from_cache=True)

        satoshis = await self.backend.get_address_balance(address)
        fetched_at = now if now is not None else 0
        if now is not None:
            await self.cache.set(key, str(satoshis), now)
        return BalanceInfo(address, satoshis, fetched_at)

    async def _load_will_status(self, force: bool) -> Optional[WillStatus]:
        return await self.backend.get_will_status()

    def _apply_will_status(self, status: Optional[WillStatus]) -> None:
        self.clock.update(status)
        if self.monitor is not None:
            self.monitor.recompute()

    async def _load_claims(self, force: bool) -> List[InheritanceClaim]:
        return await self.backend.get_pending_claims()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def verdict(self) -> LivenessVerdict:
        return self.clock.evaluate()

    def validate_will(
        self,
        beneficiary_identity: str,
        beneficiary_address: str,
        heartbeat_interval_seconds: int,
        payload: bytes,
    ) -> None:
        if not beneficiary_identity or not beneficiary_identity.strip():
            raise InvalidWillPayload("beneficiary", "identity is required")
        if detect_address_network(beneficiary_address or "") is None:
            raise InvalidWillPayload("beneficiary address", f"not a recognized address: {beneficiary_address!r}")
        minimum = self.config.will.min_heartbeat_interval_sec
        if heartbeat_interval_seconds < minimum:
            raise InvalidWillPayload(
                "heartbeat interval",
                f"{heartbeat_interval_seconds}s is below the minimum of {minimum}s"
            )
        if not payload and not self.config.will.allow_empty_payload:
            raise InvalidWillPayload("payload", "empty payload is not permitted")

    async def register_will(
        self,
        beneficiary_identity: str,
        beneficiary_address: str,
        heartbeat_interval_seconds: int,
        payload: Union[bytes, str] = b"",
    ) -> str:
        """
        Register the caller's will, then re-fetch its status.

        Raises:
            InvalidWillPayload: Validation failed, nothing was sent
            RemoteCallFailed: The registry rejected or did not answer
        """
        data = payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)
        self.validate_will(beneficiary_identity, beneficiary_address, heartbeat_interval_seconds, data)

        confirmation = await self.backend.register_will(
            beneficiary_identity.strip(),
            beneficiary_address.strip(),
            heartbeat_interval_seconds,
            data,
        )
        logger.info(f"Will registered: {confirmation}")
        await self.refresh(RefreshKind.WILL_STATUS, force=True)
        return confirmation

    async def broadcast_heartbeat(self) -> LivenessVerdict:
        """
        Send proof of life and recompute liveness immediately.

        Raises:
            NoProtocolRegistered: No will to keep alive
            RemoteCallFailed: Broadcast failed (not retried)
        """
        await self.backend.broadcast_heartbeat()
        logger.info("Heartbeat broadcast")
        await self.refresh(RefreshKind.WILL_STATUS, force=True)
        return self.verdict()

    def is_claimed(self, owner_identity: str) -> bool:
        return owner_identity in self._claimed

    async def submit_claim(self, owner_identity: str) -> bytes:
        """
        Claim an expired will and return the encrypted secret.

        Only attempted when the latest fetched claim for owner_identity is
        expired. Registry errors propagate unchanged and leave the claim
        unconsumed.

        Raises:
            AccessDenied: No such claim, not expired, or already claimed
            RemoteCallFailed: The registry refused the claim
        """
        claim = next((c for c in self.claims if c.owner_identity == owner_identity), None)
        if claim is None:
            raise AccessDenied(f"no pending claim from {owner_identity}")
        if not claim.is_expired:
            raise AccessDenied(f"claim from {owner_identity} has not expired")
        if owner_identity in self._claimed:
            raise AccessDenied(f"claim from {owner_identity} was already submitted")

        try:
            secret = await self.backend.submit_claim(owner_identity)
        except DeadSwitchError as e:
            logger.warning(f"Claim for {owner_identity} failed: {e.message}")
            raise

        self._claimed.add(owner_identity)
        logger.info(f"Claim for {owner_identity} accepted ({len(secret)} secret bytes)")
        return secret

    async def close(self) -> None:
        await self.cache.close()
        await self.backend.close()
