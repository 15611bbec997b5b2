"""
Deadswitch Test Fixtures
"""

import pytest

from deadswitch.app.config import ClientConfig
from deadswitch.app.service import ProtocolService
from deadswitch.app.client import ProtocolClient
from deadswitch.core.types import Identity
from deadswitch.liveness.clock import FixedTimeSource, LivenessClock
from deadswitch.liveness.monitor import LivenessMonitor
from deadswitch.registry.backend import MockRegistry
from deadswitch.storage.cache import MemoryCache


NOW = 1_700_000_000  # 2023-11-14 22:13:20 UTC

# secp256k1 generator point
G_COMPRESSED = "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
G_UNCOMPRESSED = (
    "04"
    "79be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
    "483ada7726a3c4655da4fbfc0e1108a8fd17b448a68554199c47d08ffb10d4b8"
)
G_HASH160 = "751e76e8199196d454941c45d1b3a323f1433bd6"

MAINNET_P2WPKH = "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4"
TESTNET_P2WPKH = "tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx"
MAINNET_P2PKH = "1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMH"
MAINNET_P2SH_P2WPKH = "3JvL6Ymt8MVWiCNHC7oWU6nLeHNJKLZGLN"
MAINNET_P2PKH_UNCOMPRESSED = "1EHNa6Q4Jz2uvNExL497mE43ikXhwF6kZm"

HOUR = 3600


@pytest.fixture
def time_source() -> FixedTimeSource:
    """Manually driven clock starting at NOW."""
    return FixedTimeSource(NOW)


@pytest.fixture
def registry(time_source) -> MockRegistry:
    """In-process registry sharing the test clock."""
    return MockRegistry(time_source=time_source)


@pytest.fixture
def config() -> ClientConfig:
    """Testnet config with a fast monitor tick."""
    config = ClientConfig.default_testnet()
    config.liveness.tick_interval_sec = 0.01
    return config


@pytest.fixture
def clock(time_source) -> LivenessClock:
    return LivenessClock(time_source)


@pytest.fixture
def monitor(clock) -> LivenessMonitor:
    return LivenessMonitor(clock, tick_interval=0.01)


@pytest.fixture
def alice() -> Identity:
    return Identity("alice", token="alice-token")


@pytest.fixture
def bob() -> Identity:
    return Identity("bob", token="bob-token")


@pytest.fixture
def service(registry, clock, monitor, config, alice) -> ProtocolService:
    """Service acting as alice against the mock registry."""
    registry.authenticate(alice)
    return ProtocolService(registry, cache=MemoryCache(), clock=clock, monitor=monitor, config=config)


@pytest.fixture
def client(registry, time_source, config) -> ProtocolClient:
    """Unauthenticated client over the mock registry."""
    return ProtocolClient(registry, config=config, clock=LivenessClock(time_source))
