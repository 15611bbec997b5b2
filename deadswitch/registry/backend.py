"""
Deadswitch Registry Backend

Interface of the remote registry collaborator (wills, heartbeats, claims,
custody key, balances) and a deterministic in-process implementation.
"""

from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from collections import Counter
from typing import Dict, List, Optional

from deadswitch.core.types import Identity, WillRecord, WillStatus, InheritanceClaim
from deadswitch.errors import NotAuthenticated, NoProtocolRegistered, RemoteCallFailed
from deadswitch.liveness.clock import TimeSource, SystemTimeSource, project_claim

logger = logging.getLogger(__name__)


class RegistryBackend(ABC):
    """
    Asynchronous registry collaborator.

    Every call acts on behalf of the authenticated identity. Failures are
    raised as RemoteCallFailed (or NoProtocolRegistered / NotAuthenticated)
    and are never retried here.
    """

    def __init__(self):
        self.identity: Optional[Identity] = None

    def authenticate(self, identity: Identity) -> None:
        self.identity = identity

    def clear_identity(self) -> None:
        self.identity = None

    def _require_identity(self, operation: str) -> Identity:
        if self.identity is None:
            raise NotAuthenticated(operation)
        return self.identity

    @abstractmethod
    async def register_will(
        self,
        beneficiary_identity: str,
        beneficiary_address: str,
        heartbeat_interval_seconds: int,
        encrypted_payload: bytes,
    ) -> str:
        """Register (or re-register) the caller's will. Returns a confirmation."""

    @abstractmethod
    async def broadcast_heartbeat(self) -> None:
        """Proof of life. Raises NoProtocolRegistered if the caller has no will."""

    @abstractmethod
    async def get_will_status(self) -> Optional[WillStatus]:
        """The caller's own will status, None when not found."""

    @abstractmethod
    async def get_pending_claims(self) -> List[InheritanceClaim]:
        """Wills naming the caller as beneficiary."""

    @abstractmethod
    async def get_custody_public_key(self) -> str:
        """Custody key hex (or, in some deployments, an encoded address)."""

    @abstractmethod
    async def get_address_balance(self, address: str) -> int:
        """Confirmed balance in satoshis."""

    @abstractmethod
    async def submit_claim(self, owner_identity: str) -> bytes:
        """Claim an expired will. Returns the encrypted secret payload."""

    async def close(self) -> None:
        pass


# ==============================================================================
# Mock registry
# ==============================================================================

# Compressed secp256k1 generator point
MOCK_CUSTODY_KEY = "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"


class MockRegistry(RegistryBackend):
    """
    Deterministic registry for testing and demos.

    Keeps wills in memory, evaluates expiration against the injected time
    source, and can be told to fail the next call of any operation.
    """

    def __init__(
        self,
        time_source: Optional[TimeSource] = None,
        custody_key: str = MOCK_CUSTODY_KEY,
    ):
        super().__init__()
        self.time_source: TimeSource = time_source or SystemTimeSource()
        self.custody_keys: Dict[str, str] = {}
        self.default_custody_key = custody_key
        self.wills: Dict[str, WillRecord] = {}
        self.beneficiaries: Dict[str, str] = {}
        self.payloads: Dict[str, Optional[bytes]] = {}
        self.balances: Dict[str, int] = {}
        self.calls: Counter = Counter()
        self._failures: Dict[str, str] = {}

    def fail_next(self, operation: str, cause: str) -> None:
        """Make the next call of operation raise RemoteCallFailed(cause)."""
        self._failures[operation] = cause

    def _enter(self, operation: str) -> Identity:
        self.calls[operation] += 1
        identity = self._require_identity(operation)
        cause = self._failures.pop(operation, None)
        if cause is not None:
            raise RemoteCallFailed(operation, cause)
        return identity

    def now(self) -> int:
        return int(self.time_source())

    async def register_will(
        self,
        beneficiary_identity: str,
        beneficiary_address: str,
        heartbeat_interval_seconds: int,
        encrypted_payload: bytes,
    ) -> str:
        owner = self._enter("register_will").principal
        self.wills[owner] = WillRecord(
            owner_identity=owner,
            beneficiary_address=beneficiary_address,
            heartbeat_interval_seconds=heartbeat_interval_seconds,
            last_active_timestamp=self.now(),
        )
        self.beneficiaries[owner] = beneficiary_identity
        self.payloads[owner] = bytes(encrypted_payload) or None
        return "Will registered successfully"

    async def broadcast_heartbeat(self) -> None:
        owner = self._enter("broadcast_heartbeat").principal
        record = self.wills.get(owner)
        if record is None:
            raise NoProtocolRegistered("No will found")
        self.wills[owner] = record.with_heartbeat(self.now())

    async def get_will_status(self) -> Optional[WillStatus]:
        owner = self._enter("get_will_status").principal
        record = self.wills.get(owner)
        return record.status() if record else None

    async def get_pending_claims(self) -> List[InheritanceClaim]:
        caller = self._enter("get_pending_claims").principal
        now = self.now()
        return [
            project_claim(record, now)
            for owner, record in self.wills.items()
            if self.beneficiaries.get(owner) == caller
        ]

    async def get_custody_public_key(self) -> str:
        caller = self._enter("get_custody_public_key").principal
        return self.custody_keys.get(caller, self.default_custody_key)

    async def get_address_balance(self, address: str) -> int:
        self._enter("get_address_balance")
        return self.balances.get(address, 0)

    async def submit_claim(self, owner_identity: str) -> bytes:
        caller = self._enter("submit_claim").principal
        record = self.wills.get(owner_identity)
        if record is None or self.beneficiaries.get(owner_identity) != caller:
            raise RemoteCallFailed("submit_claim", "Unauthorized")
        if not project_claim(record, self.now()).is_expired:
            raise RemoteCallFailed("submit_claim", "Owner is still alive")
        return self.payloads.get(owner_identity) or b""
