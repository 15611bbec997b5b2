"""
Deadswitch HTTP Registry Client

JSON gateway in front of the registry, identity and Bitcoin network
collaborators.

    POST /wills                          register will
    POST /heartbeat                      proof of life
    GET  /wills/me                       own will status (404 = none)
    GET  /inheritances                   pending claims for the caller
    GET  /custody-key                    custody public key hex or address
    GET  /balances/{address}             confirmed satoshis
    POST /inheritances/{owner}/claim     claim an expired will

Binary payloads travel base64-encoded. Error bodies are {"error": "..."}
and their text is surfaced verbatim.
"""

from __future__ import annotations
import base64
import logging
from typing import Any, List, Optional
from urllib.parse import quote

import httpx

from deadswitch.constants import DEFAULT_REGISTRY_URL, DEFAULT_REGISTRY_TIMEOUT_SEC
from deadswitch.core.types import WillStatus, InheritanceClaim
from deadswitch.errors import NoProtocolRegistered, RemoteCallFailed
from deadswitch.registry.backend import RegistryBackend

logger = logging.getLogger(__name__)


def _error_text(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    text = resp.text.strip()
    return text or f"HTTP {resp.status_code}"


class HttpRegistryClient(RegistryBackend):
    """httpx-based registry backend."""

    def __init__(
        self,
        base_url: str = DEFAULT_REGISTRY_URL,
        timeout: float = DEFAULT_REGISTRY_TIMEOUT_SEC,
        verify_tls: bool = True,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            verify=verify_tls,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpRegistryClient:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        payload: Optional[dict] = None,
    ) -> httpx.Response:
        identity = self._require_identity(operation)
        headers = {"Authorization": f"Bearer {identity.token}"}
        logger.debug(f"{operation}: {method} {path}")
        try:
            return await self._client.request(method, path, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise RemoteCallFailed(operation, str(e) or e.__class__.__name__) from e

    def _json(self, resp: httpx.Response, operation: str) -> Any:
        if not resp.is_success:
            raise RemoteCallFailed(operation, _error_text(resp))
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteCallFailed(operation, f"malformed response: {e}") from e

    async def register_will(
        self,
        beneficiary_identity: str,
        beneficiary_address: str,
        heartbeat_interval_seconds: int,
        encrypted_payload: bytes,
    ) -> str:
        resp = await self._request("POST", "/wills", "register_will", {
            "beneficiary": beneficiary_identity,
            "beneficiary_btc_address": beneficiary_address,
            "heartbeat_seconds": heartbeat_interval_seconds,
            "encrypted_secret": base64.b64encode(encrypted_payload).decode("ascii"),
        })
        data = self._json(resp, "register_will")
        return str(data.get("message", "")) if isinstance(data, dict) else str(data)

    async def broadcast_heartbeat(self) -> None:
        resp = await self._request("POST", "/heartbeat", "broadcast_heartbeat")
        if resp.status_code == 404:
            raise NoProtocolRegistered(_error_text(resp))
        if not resp.is_success:
            raise RemoteCallFailed("broadcast_heartbeat", _error_text(resp))

    async def get_will_status(self) -> Optional[WillStatus]:
        resp = await self._request("GET", "/wills/me", "get_will_status")
        if resp.status_code == 404:
            return None
        data = self._json(resp, "get_will_status")
        try:
            return WillStatus.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteCallFailed("get_will_status", f"malformed will status: {e}") from e

    async def get_pending_claims(self) -> List[InheritanceClaim]:
        resp = await self._request("GET", "/inheritances", "get_pending_claims")
        data = self._json(resp, "get_pending_claims")
        try:
            return [InheritanceClaim.from_dict(item) for item in data]
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteCallFailed("get_pending_claims", f"malformed claim: {e}") from e

    async def get_custody_public_key(self) -> str:
        resp = await self._request("GET", "/custody-key", "get_custody_public_key")
        data = self._json(resp, "get_custody_public_key")
        if isinstance(data, dict):
            return str(data.get("public_key", ""))
        return str(data)

    async def get_address_balance(self, address: str) -> int:
        resp = await self._request(
            "GET", f"/balances/{quote(address, safe='')}", "get_address_balance"
        )
        data = self._json(resp, "get_address_balance")
        try:
            return int(data["satoshis"])
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteCallFailed("get_address_balance", f"malformed balance: {e}") from e

    async def submit_claim(self, owner_identity: str) -> bytes:
        resp = await self._request(
            "POST", f"/inheritances/{quote(owner_identity, safe='')}/claim", "submit_claim"
        )
        data = self._json(resp, "submit_claim")
        try:
            return base64.b64decode(data.get("secret", ""))
        except (AttributeError, ValueError) as e:
            raise RemoteCallFailed("submit_claim", f"malformed secret: {e}") from e
