"""
Deadswitch Hash Functions

SHA-256 and RIPEMD-160 as used by Bitcoin address encodings.
"""

from __future__ import annotations
from typing import Union

from Crypto.Hash import RIPEMD160, SHA256

BytesLike = Union[bytes, bytearray, memoryview]


def sha256(data: BytesLike) -> bytes:
    """
    SHA-256 hash function.

    Args:
        data: Input data to hash

    Returns:
        bytes: 32-byte digest
    """
    return SHA256.new(bytes(data)).digest()


def double_sha256(data: BytesLike) -> bytes:
    """SHA256(SHA256(data)), the Base58Check checksum digest."""
    return sha256(sha256(data))


def ripemd160(data: BytesLike) -> bytes:
    """RIPEMD-160 hash function, 20-byte digest."""
    return RIPEMD160.new(bytes(data)).digest()


def hash160(data: BytesLike) -> bytes:
    """
    HASH160: RIPEMD160(SHA256(data)).

    The two-stage digest used for both legacy and segwit key hashes.
    """
    return ripemd160(sha256(data))
