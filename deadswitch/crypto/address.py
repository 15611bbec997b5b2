"""
Deadswitch Bitcoin Address Codec

Converts a raw secp256k1 public key into Bitcoin addresses:

    P2PKH        Base58Check(version || HASH160(pubkey))
    P2WPKH       Bech32(hrp, 0, HASH160(pubkey))
    P2SH-P2WPKH  Base58Check(p2sh_version || HASH160(0x00 0x14 || HASH160(pubkey)))

Pure and deterministic: no randomness, no network calls. The key must be a
33-byte compressed or 65-byte uncompressed SEC1 point encoding. Point
validity on the curve is not checked; the key comes from the custody
authority, not from user input.
"""

from __future__ import annotations
import logging
import re
from typing import Optional, Tuple, Union

import base58
import bech32

from deadswitch.constants import (
    DEFAULT_NETWORK,
    NETWORK_MAINNET,
    NETWORK_TESTNET,
    P2PKH_VERSION,
    P2SH_VERSION,
    SEGWIT_HRP,
    VALID_KEY_SIZES,
    COMPRESSED_KEY_SIZE,
    COMPRESSED_KEY_PREFIXES,
    UNCOMPRESSED_KEY_PREFIX,
    HASH160_SIZE,
    BASE58_CHECKSUM_SIZE,
    WITNESS_VERSION_V0,
    OP_0,
    PUSH_20,
)
from deadswitch.core.types import AddressSet, CustodyKey, CustodyKeyKind, normalize_network
from deadswitch.crypto.hash import double_sha256, hash160
from deadswitch.errors import AddressDerivationError, InvalidKeyLength

logger = logging.getLogger(__name__)

KeyInput = Union[bytes, bytearray, str]

_B58 = "1-9A-HJ-NP-Za-km-z"
_BECH32 = "02-9ac-hj-np-z"

# Prefix patterns of already-encoded addresses, per network
ADDRESS_PATTERNS = {
    NETWORK_MAINNET: (
        re.compile(rf"^[13][{_B58}]{{25,34}}$"),
        re.compile(rf"^bc1[{_BECH32}]{{8,87}}$", re.IGNORECASE),
    ),
    NETWORK_TESTNET: (
        re.compile(rf"^[mn2][{_B58}]{{25,34}}$"),
        re.compile(rf"^tb1[{_BECH32}]{{8,87}}$", re.IGNORECASE),
    ),
}

_HEX_RE = re.compile(r"^(?:0x)?([0-9a-fA-F]*)$")


# ==============================================================================
# Input validation
# ==============================================================================

def parse_public_key(public_key: KeyInput) -> bytes:
    """
    Decode and validate a raw public key.

    Args:
        public_key: Key bytes or hex string (optionally 0x-prefixed)

    Returns:
        Key bytes of length 33 or 65

    Raises:
        InvalidKeyLength: If the decoded length is not 33 or 65
        AddressDerivationError: If the input is not hex or the point
            prefix does not match the length
    """
    if isinstance(public_key, str):
        match = _HEX_RE.match(public_key.strip())
        if match is None or len(match.group(1)) % 2:
            raise AddressDerivationError(f"public key is not valid hex: {public_key[:16]!r}")
        key = bytes.fromhex(match.group(1))
    else:
        key = bytes(public_key)

    if len(key) not in VALID_KEY_SIZES:
        raise InvalidKeyLength(len(key))

    prefix = key[0]
    if len(key) == COMPRESSED_KEY_SIZE:
        if prefix not in COMPRESSED_KEY_PREFIXES:
            raise AddressDerivationError(f"compressed key prefix must be 0x02 or 0x03, got 0x{prefix:02x}")
    elif prefix != UNCOMPRESSED_KEY_PREFIX:
        raise AddressDerivationError(f"uncompressed key prefix must be 0x04, got 0x{prefix:02x}")

    return key


def is_compressed(key: bytes) -> bool:
    return len(key) == COMPRESSED_KEY_SIZE


# ==============================================================================
# Encodings
# ==============================================================================

def base58check_encode(version: int, payload: bytes) -> str:
    """Base58Check: base58(version || payload || SHA256d(version || payload)[:4])."""
    versioned = bytes([version]) + payload
    checksum = double_sha256(versioned)[:BASE58_CHECKSUM_SIZE]
    return base58.b58encode(versioned + checksum).decode("ascii")


def base58check_decode(address: str) -> Tuple[int, bytes]:
    """
    Decode a Base58Check string into (version, payload).

    Raises:
        AddressDerivationError: On bad characters or checksum mismatch
    """
    try:
        raw = base58.b58decode_check(address)
    except ValueError as e:
        raise AddressDerivationError(f"invalid Base58Check address {address!r}: {e}")
    if not raw:
        raise AddressDerivationError(f"empty Base58Check payload: {address!r}")
    return raw[0], raw[1:]


def p2wpkh_script(key_hash: bytes) -> bytes:
    """Witness v0 key-hash program script: OP_0 PUSH20 <hash160>."""
    return bytes([OP_0, PUSH_20]) + key_hash


def p2pkh_address(public_key: KeyInput, network: str = DEFAULT_NETWORK) -> str:
    """Legacy pay-to-pubkey-hash address."""
    network = normalize_network(network)
    key = parse_public_key(public_key)
    return base58check_encode(P2PKH_VERSION[network], hash160(key))


def p2wpkh_address(public_key: KeyInput, network: str = DEFAULT_NETWORK) -> str:
    """
    Native SegWit (witness v0) pay-to-witness-pubkey-hash address.

    Raises:
        AddressDerivationError: For uncompressed keys, which are not
            standard in witness programs
    """
    network = normalize_network(network)
    key = parse_public_key(public_key)
    if not is_compressed(key):
        raise AddressDerivationError("native SegWit requires a compressed public key")

    address = bech32.encode(SEGWIT_HRP[network], WITNESS_VERSION_V0, hash160(key))
    if address is None:
        raise AddressDerivationError("bech32 encoding failed")
    return address


def p2sh_p2wpkh_address(public_key: KeyInput, network: str = DEFAULT_NETWORK) -> str:
    """P2WPKH nested in P2SH: the witness program becomes the redeem script."""
    network = normalize_network(network)
    key = parse_public_key(public_key)
    if not is_compressed(key):
        raise AddressDerivationError("wrapped SegWit requires a compressed public key")

    redeem_script = p2wpkh_script(hash160(key))
    return base58check_encode(P2SH_VERSION[network], hash160(redeem_script))


def public_key_to_address(public_key: KeyInput, network: str = DEFAULT_NETWORK) -> str:
    """
    Convert a public key to a single Bitcoin address.

    Returns the native SegWit form when it can be generated and falls back
    to legacy P2PKH otherwise.

    Raises:
        InvalidKeyLength: Key is not 33 or 65 bytes
        AddressDerivationError: Any other conversion failure
    """
    network = normalize_network(network)
    key = parse_public_key(public_key)

    legacy = p2pkh_address(key, network)
    try:
        return p2wpkh_address(key, network)
    except AddressDerivationError as e:
        logger.debug(f"SegWit unavailable for {key.hex()[:16]}..., using P2PKH: {e.cause}")
        return legacy


def public_key_to_addresses(public_key: KeyInput, network: str = DEFAULT_NETWORK) -> AddressSet:
    """
    Convert a public key to every address form that can be generated.

    Legacy P2PKH is mandatory. SegWit and wrapped SegWit are None when
    they cannot be generated (uncompressed keys).
    """
    network = normalize_network(network)
    key = parse_public_key(public_key)

    legacy = p2pkh_address(key, network)

    segwit: Optional[str] = None
    wrapped: Optional[str] = None
    try:
        segwit = p2wpkh_address(key, network)
    except AddressDerivationError as e:
        logger.debug(f"No P2WPKH for {key.hex()[:16]}...: {e.cause}")
    try:
        wrapped = p2sh_p2wpkh_address(key, network)
    except AddressDerivationError as e:
        logger.debug(f"No P2SH-P2WPKH for {key.hex()[:16]}...: {e.cause}")

    return AddressSet(network=network, p2pkh=legacy, p2wpkh=segwit, p2sh=wrapped)


# ==============================================================================
# Verification
# ==============================================================================

def verify_legacy_address(address: str, network: Optional[str] = None) -> bool:
    """
    Check a Base58Check address: checksum, version byte and payload size.

    Accepts both P2PKH and P2SH versions of the given network (or of any
    network when network is None).
    """
    try:
        version, payload = base58check_decode(address)
    except AddressDerivationError:
        return False

    networks = [normalize_network(network)] if network else list(P2PKH_VERSION)
    versions = {P2PKH_VERSION[n] for n in networks} | {P2SH_VERSION[n] for n in networks}
    return version in versions and len(payload) == HASH160_SIZE


def verify_segwit_address(address: str, network: str) -> bool:
    """Check a bech32 witness v0 address against its checksum and hrp."""
    network = normalize_network(network)
    witver, witprog = bech32.decode(SEGWIT_HRP[network], address)
    if witver is None:
        return False
    return witver == WITNESS_VERSION_V0 and len(witprog) == HASH160_SIZE


def decode_segwit_address(address: str, network: str) -> bytes:
    """Return the 20-byte witness program of a v0 key-hash address."""
    network = normalize_network(network)
    witver, witprog = bech32.decode(SEGWIT_HRP[network], address)
    if witver is None:
        raise AddressDerivationError(f"invalid {network} bech32 address: {address!r}")
    return bytes(witprog)


# ==============================================================================
# Custody key classification
# ==============================================================================

def detect_address_network(value: str) -> Optional[str]:
    """Return the network whose address prefix pattern value matches, if any."""
    candidate = value.strip()
    for network, patterns in ADDRESS_PATTERNS.items():
        if any(p.match(candidate) for p in patterns):
            return network
    return None


def classify_custody_key(value: str) -> CustodyKey:
    """
    Classify an untyped custody key string from the registry.

    Some deployments return an encoded address instead of a raw key; such
    values are passed through unchanged. Everything else must be hex.

    Raises:
        AddressDerivationError: If the value is empty or neither an
            address nor hex
    """
    if value is None or not value.strip():
        raise AddressDerivationError("custody key is empty")

    candidate = value.strip()
    network = detect_address_network(candidate)
    if network is not None:
        return CustodyKey(kind=CustodyKeyKind.ADDRESS, value=candidate, network=network)

    if _HEX_RE.match(candidate):
        return CustodyKey(kind=CustodyKeyKind.RAW_KEY, value=candidate.lower().removeprefix("0x"))

    raise AddressDerivationError(f"unrecognized custody key format: {candidate[:16]!r}")


class AddressCodec:
    """
    Network-bound front end over the address functions.

    resolve() is the single dispatch point: addresses pass through,
    raw keys are converted.
    """

    def __init__(self, network: str = DEFAULT_NETWORK):
        self.network = normalize_network(network)

    def derive(self, public_key: KeyInput) -> str:
        return public_key_to_address(public_key, self.network)

    def derive_all(self, public_key: KeyInput) -> AddressSet:
        return public_key_to_addresses(public_key, self.network)

    def resolve(self, custody_key: CustodyKey) -> str:
        if custody_key.is_address:
            return custody_key.value
        return self.derive(custody_key.value)
