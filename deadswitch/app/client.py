"""
Deadswitch Protocol Client

Binds an identity, the registry backend, the service layer, the liveness
monitor and the session controller.

    login  -> authenticate backend, fetch will status + claims,
              controller.login() with the current critical condition,
              start the 1 Hz monitor
    tick   -> verdict -> controller.observe_verdict()
    claims -> controller.observe_claims()
    transition effects -> service refreshes (scheduled on the loop)
    logout -> stop monitor, clear identity, back to UNAUTHENTICATED
"""

from __future__ import annotations
import asyncio
import logging
from typing import Iterable, List, Optional, Set, Union

from deadswitch.app.config import ClientConfig
from deadswitch.app.service import DataSlot, ProtocolService, RefreshKind, SlotStatus
from deadswitch.core.types import Identity, View
from deadswitch.liveness.clock import LivenessClock, LivenessVerdict, NtpTimeSource, SystemTimeSource
from deadswitch.liveness.monitor import LivenessMonitor
from deadswitch.registry.backend import RegistryBackend
from deadswitch.registry.http import HttpRegistryClient
from deadswitch.session.controller import Effect, SessionController, Transition
from deadswitch.storage.cache import CacheStore, MemoryCache, SqliteCache

logger = logging.getLogger(__name__)


class ProtocolClient:
    """
    Client-side core of the dead-man's-switch application.

    Usage:
        client = ProtocolClient.from_config(ClientConfig.default_testnet())
        await client.login(Identity("alice", token))
        await client.heartbeat()
        client.close_view()
        await client.drain()
        await client.shutdown()
    """

    def __init__(
        self,
        backend: RegistryBackend,
        config: Optional[ClientConfig] = None,
        clock: Optional[LivenessClock] = None,
        cache: Optional[CacheStore] = None,
    ):
        self.config = config or ClientConfig()
        self.backend = backend
        self.clock = clock or LivenessClock()
        self.monitor = LivenessMonitor(self.clock, self.config.liveness.tick_interval_sec)
        self.service = ProtocolService(
            backend,
            cache=cache or MemoryCache(),
            clock=self.clock,
            monitor=self.monitor,
            config=self.config,
        )
        self.controller = SessionController()

        self._pending: Set[asyncio.Task] = set()
        self._deferred: List[Effect] = []
        self._ntp_task: Optional[asyncio.Task] = None

        self.monitor.subscribe(self._on_verdict)
        self.service.on_update(self._on_slot)
        self.controller.on_transition(self._on_transition)

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        backend: Optional[RegistryBackend] = None,
    ) -> ProtocolClient:
        """Build a client with the time source, cache and backend the config names."""
        if config.liveness.time_source == "ntp":
            time_source = NtpTimeSource(config.liveness.ntp_server)
        else:
            time_source = SystemTimeSource()

        if config.cache.backend == "sqlite":
            cache: CacheStore = SqliteCache(config.cache.db_path)
        else:
            cache = MemoryCache()

        if backend is None:
            backend = HttpRegistryClient(
                base_url=config.registry.base_url,
                timeout=config.registry.timeout_sec,
                verify_tls=config.registry.verify_tls,
            )

        return cls(backend, config=config, clock=LivenessClock(time_source), cache=cache)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def identity(self) -> Optional[Identity]:
        return self.backend.identity

    @property
    def view(self) -> View:
        return self.controller.view

    def verdict(self) -> LivenessVerdict:
        return self.service.verdict()

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def login(self, identity: Identity) -> Optional[Transition]:
        """
        Authenticate and enter the session.

        Will status and claims are fetched first so the controller can pick
        the initial view. Fetch failures leave the slots in error state and
        the login proceeds.
        """
        if self.controller.authenticated:
            logger.debug("login ignored: session already active")
            return None

        self.backend.authenticate(identity)
        logger.info(f"Logged in as {identity.principal}")

        cache = self.service.cache
        if isinstance(cache, SqliteCache):
            await cache.connect()

        source = self.clock.time_source
        if isinstance(source, NtpTimeSource) and self._ntp_task is None:
            await source.sync()
            self._ntp_task = asyncio.create_task(self._ntp_loop(source))

        await asyncio.gather(
            self.service.refresh(RefreshKind.WILL_STATUS),
            self.service.refresh(RefreshKind.CLAIMS),
        )
        self.controller.observe_verdict(self.service.verdict())

        transition = self.controller.login()
        await self.monitor.start()
        return transition

    async def logout(self) -> Optional[Transition]:
        transition = self.controller.logout()
        await self.monitor.stop()
        await self._cancel_pending()
        self.backend.clear_identity()
        self.clock.update(None)
        self.service.reset()
        if transition is not None:
            logger.info("Logged out")
        return transition

    def navigate(self, target: View) -> Optional[Transition]:
        return self.controller.navigate(target)

    def close_view(self) -> Optional[Transition]:
        return self.controller.close()

    async def shutdown(self) -> None:
        await self.logout()
        if self._ntp_task is not None:
            self._ntp_task.cancel()
            try:
                await self._ntp_task
            except asyncio.CancelledError:
                pass
            self._ntp_task = None
        await self.service.close()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def heartbeat(self) -> LivenessVerdict:
        return await self.service.broadcast_heartbeat()

    async def register_will(
        self,
        beneficiary_identity: str,
        beneficiary_address: str,
        heartbeat_interval_seconds: int,
        payload: Union[bytes, str] = b"",
    ) -> str:
        return await self.service.register_will(
            beneficiary_identity, beneficiary_address, heartbeat_interval_seconds, payload
        )

    async def claim(self, owner_identity: str) -> bytes:
        return await self.service.submit_claim(owner_identity)

    # ------------------------------------------------------------------
    # Effects
    # ------------------------------------------------------------------

    async def drain(self) -> None:
        """Run deferred effects and wait for scheduled ones."""
        if self._deferred:
            effects, self._deferred = self._deferred, []
            await self._run_effects(effects)
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def _run_effects(self, effects: Iterable[Effect]) -> None:
        for effect in effects:
            if effect is Effect.REFRESH_MONITOR:
                await self.service.refresh_monitor_data()
            elif effect is Effect.REFRESH_CLAIMS:
                await self.service.refresh_claims()

    def _on_transition(self, transition: Transition) -> None:
        if not transition.effects:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._deferred.extend(transition.effects)
            return
        task = loop.create_task(self._run_effects(transition.effects))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _on_verdict(self, verdict: LivenessVerdict) -> None:
        if self.controller.authenticated:
            self.controller.observe_verdict(verdict)

    def _on_slot(self, slot: DataSlot) -> None:
        if slot.kind is RefreshKind.CLAIMS and slot.status is SlotStatus.READY:
            self.controller.observe_claims(slot.value)

    async def _cancel_pending(self) -> None:
        tasks = list(self._pending)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._pending.clear()
        self._deferred.clear()

    async def _ntp_loop(self, source: NtpTimeSource) -> None:
        while True:
            await asyncio.sleep(self.config.liveness.ntp_sync_interval_sec)
            await source.sync()
