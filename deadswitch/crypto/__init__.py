"""
Deadswitch Cryptographic Primitives

Hashes and Bitcoin address encodings.
"""

from deadswitch.crypto.hash import sha256, double_sha256, ripemd160, hash160
from deadswitch.crypto.address import (
    AddressCodec,
    parse_public_key,
    public_key_to_address,
    public_key_to_addresses,
    p2pkh_address,
    p2wpkh_address,
    p2sh_p2wpkh_address,
    verify_legacy_address,
    verify_segwit_address,
    classify_custody_key,
    detect_address_network,
)

__all__ = [
    # Hashes
    "sha256",
    "double_sha256",
    "ripemd160",
    "hash160",
    # Addresses
    "AddressCodec",
    "parse_public_key",
    "public_key_to_address",
    "public_key_to_addresses",
    "p2pkh_address",
    "p2wpkh_address",
    "p2sh_p2wpkh_address",
    "verify_legacy_address",
    "verify_segwit_address",
    "classify_custody_key",
    "detect_address_network",
]
