"""
Deadswitch Constants

All protocol constants defined here for single source of truth.
"""

from typing import Final, Dict

# ==============================================================================
# NETWORKS
# ==============================================================================

NETWORK_MAINNET: Final[str] = "mainnet"
NETWORK_TESTNET: Final[str] = "testnet"
DEFAULT_NETWORK: Final[str] = NETWORK_TESTNET

# Base58Check version bytes
P2PKH_VERSION: Final[Dict[str, int]] = {
    NETWORK_MAINNET: 0x00,   # 1...
    NETWORK_TESTNET: 0x6F,   # m... / n...
}
P2SH_VERSION: Final[Dict[str, int]] = {
    NETWORK_MAINNET: 0x05,   # 3...
    NETWORK_TESTNET: 0xC4,   # 2...
}

# Bech32 human-readable parts
SEGWIT_HRP: Final[Dict[str, str]] = {
    NETWORK_MAINNET: "bc",
    NETWORK_TESTNET: "tb",
}

# ==============================================================================
# KEYS AND ENCODINGS
# ==============================================================================

COMPRESSED_KEY_SIZE: Final[int] = 33
UNCOMPRESSED_KEY_SIZE: Final[int] = 65
VALID_KEY_SIZES: Final[tuple] = (COMPRESSED_KEY_SIZE, UNCOMPRESSED_KEY_SIZE)

COMPRESSED_KEY_PREFIXES: Final[tuple] = (0x02, 0x03)
UNCOMPRESSED_KEY_PREFIX: Final[int] = 0x04

HASH160_SIZE: Final[int] = 20
BASE58_CHECKSUM_SIZE: Final[int] = 4

WITNESS_VERSION_V0: Final[int] = 0
OP_0: Final[int] = 0x00
PUSH_20: Final[int] = 0x14

# ==============================================================================
# LIVENESS
# ==============================================================================

NO_PROTOCOL_SENTINEL: Final[int] = -1     # no will registered / clock unavailable
EXPIRED_REMAINING: Final[int] = 0
LIVENESS_TICK_INTERVAL_SEC: Final[float] = 1.0

SECONDS_PER_MINUTE: Final[int] = 60
SECONDS_PER_HOUR: Final[int] = 3600
SECONDS_PER_DAY: Final[int] = 86400

DEFAULT_HEARTBEAT_INTERVAL_SEC: Final[int] = 90 * SECONDS_PER_DAY   # 7_776_000
MIN_HEARTBEAT_INTERVAL_SEC: Final[int] = 1

# ==============================================================================
# CACHING
# ==============================================================================

BALANCE_TTL_SEC: Final[int] = 5 * SECONDS_PER_MINUTE
ADDRESS_CACHE_PREFIX: Final[str] = "address:"
BALANCE_CACHE_PREFIX: Final[str] = "balance:"

# ==============================================================================
# TIME SOURCES
# ==============================================================================

DEFAULT_NTP_SERVER: Final[str] = "pool.ntp.org"
NTP_QUERY_TIMEOUT_SEC: Final[float] = 2.0
NTP_SYNC_INTERVAL_SEC: Final[int] = 3600

# ==============================================================================
# REGISTRY
# ==============================================================================

DEFAULT_REGISTRY_URL: Final[str] = "http://127.0.0.1:8080"
DEFAULT_REGISTRY_TIMEOUT_SEC: Final[float] = 10.0
