"""
Deadswitch Protocol Client Tests
End-to-end sessions against the mock registry.
"""

import asyncio

import pytest

from deadswitch.app.client import ProtocolClient
from deadswitch.app.config import ClientConfig
from deadswitch.app.service import SlotStatus, RefreshKind
from deadswitch.core.types import Identity, View
from deadswitch.liveness.clock import LivenessStatus, NtpTimeSource, SystemTimeSource
from deadswitch.registry.http import HttpRegistryClient
from deadswitch.session.controller import Trigger
from deadswitch.storage.cache import MemoryCache, SqliteCache

from conftest import HOUR, TESTNET_P2WPKH


async def alice_registers(client, alice, interval=HOUR):
    await client.login(alice)
    await client.register_will("bob", TESTNET_P2WPKH, interval, b"sealed")


class TestLoginLogout:
    """Tests for session entry and exit."""

    @pytest.mark.asyncio
    async def test_login_without_will(self, client, alice):
        transition = await client.login(alice)
        try:
            assert transition.target is View.PROTOCOL_SETUP
            assert client.identity == alice
            assert client.monitor.running
            assert client.verdict().status is LivenessStatus.NO_PROTOCOL
        finally:
            await client.shutdown()

    @pytest.mark.asyncio
    async def test_login_twice(self, client, alice):
        await client.login(alice)
        assert await client.login(alice) is None
        await client.shutdown()

    @pytest.mark.asyncio
    async def test_logout(self, client, alice):
        await alice_registers(client, alice)
        transition = await client.logout()

        assert transition.trigger is Trigger.LOGOUT
        assert client.view is View.UNAUTHENTICATED
        assert client.identity is None
        assert not client.monitor.running
        assert client.clock.status is None
        assert await client.logout() is None
        await client.shutdown()

    @pytest.mark.asyncio
    async def test_login_with_registry_down(self, client, registry, alice):
        registry.fail_next("get_will_status", "registry unavailable")
        transition = await client.login(alice)
        assert transition.target is View.PROTOCOL_SETUP
        assert client.service.slots[RefreshKind.WILL_STATUS].status is SlotStatus.ERROR
        await client.shutdown()

    @pytest.mark.asyncio
    async def test_login_with_expired_own_will(self, client, alice, time_source):
        await alice_registers(client, alice)
        await client.logout()
        time_source.advance(HOUR)

        transition = await client.login(alice)
        assert transition.target is View.CRITICAL_ALERT
        await client.shutdown()

    @pytest.mark.asyncio
    async def test_previous_user_status_not_carried_over(self, client, registry, alice, bob, time_source):
        await client.login(alice)
        await client.register_will("carol", TESTNET_P2WPKH, HOUR, b"sealed")
        time_source.advance(HOUR)

        gate = asyncio.Event()
        fetch = registry.get_will_status
        callers = []

        async def will_status():
            caller = registry.identity.principal
            callers.append(caller)
            status = await fetch()
            if caller == "alice":
                await gate.wait()
            return status

        registry.get_will_status = will_status
        pending = asyncio.create_task(client.service.refresh(RefreshKind.WILL_STATUS, force=True))
        while not callers:
            await asyncio.sleep(0)

        await client.logout()
        transition = await client.login(bob)

        assert callers == ["alice", "bob"]
        assert transition.target is View.PROTOCOL_SETUP
        assert client.verdict().status is LivenessStatus.NO_PROTOCOL

        gate.set()
        await pending
        assert client.clock.status is None
        assert client.verdict().status is LivenessStatus.NO_PROTOCOL
        assert client.view is View.PROTOCOL_SETUP
        await client.shutdown()


class TestBeneficiarySession:
    """Tests for the beneficiary side of a session."""

    @pytest.mark.asyncio
    async def test_login_with_expired_claim(self, client, registry, alice, bob, time_source):
        await alice_registers(client, alice)
        await client.logout()
        time_source.advance(HOUR)

        transition = await client.login(bob)
        await client.drain()

        assert transition.target is View.CRITICAL_ALERT
        assert registry.calls["get_pending_claims"] >= 2
        assert client.service.claims[0].is_expired
        assert await client.claim("alice") == b"sealed"
        await client.shutdown()

    @pytest.mark.asyncio
    async def test_login_with_live_claim(self, client, alice, bob):
        await alice_registers(client, alice)
        await client.logout()

        transition = await client.login(bob)
        assert transition.target is View.PROTOCOL_SETUP
        assert not client.service.claims[0].is_expired
        await client.shutdown()


class TestNavigationEffects:
    """Tests for transition effects executed through the service."""

    @pytest.mark.asyncio
    async def test_monitor_refreshes_data(self, client, registry, alice):
        registry.balances[TESTNET_P2WPKH] = 777
        await client.login(alice)

        client.navigate(View.MONITOR)
        await client.drain()

        assert client.service.address == TESTNET_P2WPKH
        assert client.service.balance.satoshis == 777
        await client.shutdown()

    @pytest.mark.asyncio
    async def test_close_setup_refreshes_monitor(self, client, registry, alice):
        await client.login(alice)
        client.close_view()
        await client.drain()
        assert client.view is View.MONITOR
        assert registry.calls["get_address_balance"] == 1
        await client.shutdown()

    @pytest.mark.asyncio
    async def test_unauthenticated_navigation_rejected(self, client):
        assert client.navigate(View.MONITOR) is None
        assert client.view is View.UNAUTHENTICATED
        assert len(client.controller.notices) == 1

    def test_effects_deferred_without_loop(self, registry, config, alice):
        client = ProtocolClient(registry, config=config)
        registry.authenticate(alice)
        client.controller.login()
        client.navigate(View.MONITOR)
        assert client._deferred

        asyncio.run(client.drain())
        assert client.service.address == TESTNET_P2WPKH


class TestAutoAlert:
    """Tests for the monitor-driven critical alert."""

    @pytest.mark.asyncio
    async def test_expiry_raises_alert_once(self, client, alice, time_source):
        await alice_registers(client, alice)
        assert client.view is View.PROTOCOL_SETUP

        time_source.advance(HOUR)
        await asyncio.sleep(0.05)
        await client.drain()
        assert client.view is View.CRITICAL_ALERT

        client.navigate(View.PROTOCOL_SETUP)
        await asyncio.sleep(0.05)
        assert client.view is View.PROTOCOL_SETUP
        await client.shutdown()

    @pytest.mark.asyncio
    async def test_heartbeat_clears_condition(self, client, alice, time_source):
        await alice_registers(client, alice)
        time_source.advance(HOUR)
        await asyncio.sleep(0.05)
        assert client.controller.will_expired

        verdict = await client.heartbeat()
        await asyncio.sleep(0.05)
        assert verdict.remaining == HOUR
        assert not client.controller.will_expired
        await client.shutdown()


class TestFromConfig:
    """Tests for config-driven construction."""

    @pytest.mark.asyncio
    async def test_default_testnet(self):
        client = ProtocolClient.from_config(ClientConfig.default_testnet())
        assert isinstance(client.backend, HttpRegistryClient)
        assert isinstance(client.service.cache, MemoryCache)
        assert isinstance(client.clock.time_source, SystemTimeSource)
        await client.shutdown()

    @pytest.mark.asyncio
    async def test_mainnet_uses_sqlite_and_ntp(self, tmp_path, registry):
        config = ClientConfig.default_mainnet()
        config.cache.db_path = str(tmp_path / "cache.db")
        client = ProtocolClient.from_config(config, backend=registry)

        assert client.backend is registry
        assert isinstance(client.service.cache, SqliteCache)
        assert isinstance(client.clock.time_source, NtpTimeSource)
        assert client.service.codec.network == "mainnet"
        await client.shutdown()

    @pytest.mark.asyncio
    async def test_sqlite_connected_on_login(self, tmp_path, registry, alice, time_source):
        config = ClientConfig.default_testnet()
        config.cache.backend = "sqlite"
        config.cache.db_path = str(tmp_path / "cache.db")
        client = ProtocolClient.from_config(config, backend=registry)
        client.clock.time_source = time_source

        await client.login(alice)
        client.navigate(View.MONITOR)
        await client.drain()
        assert client.service.address == TESTNET_P2WPKH
        await client.shutdown()
