"""
Deadswitch Hash Function Tests
"""

from deadswitch.crypto.hash import sha256, double_sha256, ripemd160, hash160

from conftest import G_COMPRESSED, G_HASH160


class TestHashes:
    """Known-answer tests for the address digests."""

    def test_sha256_empty(self):
        assert sha256(b"").hex() == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

    def test_double_sha256_empty(self):
        assert double_sha256(b"").hex() == "5df6e0e2761359d30a8275058e299fcc0381534545f55cf43e41983f5d4c9456"

    def test_ripemd160_empty(self):
        assert ripemd160(b"").hex() == "9c1185a5c5e9fc54612808977ee8f548b2258d31"

    def test_hash160_generator_key(self):
        assert hash160(bytes.fromhex(G_COMPRESSED)).hex() == G_HASH160

    def test_accepts_bytearray(self):
        assert sha256(bytearray(b"abc")) == sha256(b"abc")
