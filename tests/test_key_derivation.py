"""
Tests for key derivation and key decoding helpers.
"""

from __future__ import annotations

import base64

import pytest

from encrypted_message import (
    ConfigError,
    SecretKey,
    decode_base64_keys,
    decode_hex_keys,
    derive_key_from,
    generate_key,
)


def test_derive_key_from_is_pbkdf2_sha256() -> None:
    # RFC 7914 section 11 PBKDF2-HMAC-SHA256 test vector
    key = derive_key_from(b"passwd", b"salt", 1)
    expected = bytes.fromhex(
        "55ac046e56e3089fec1691c22544b605f94185216dde0465e68b9d57c20dacbc"
    )
    assert key == SecretKey(expected)


def test_derive_key_from_depends_on_salt() -> None:
    assert derive_key_from(b"human-key", b"salt-a", 10) != derive_key_from(
        b"human-key", b"salt-b", 10
    )


@pytest.mark.parametrize(
    "raw_key, salt, iterations",
    [(b"", b"salt", 1), (b"key", b"", 1), (b"key", b"salt", 0)],
)
def test_derive_key_from_invalid_input(raw_key, salt, iterations) -> None:
    with pytest.raises(ConfigError):
        derive_key_from(raw_key, salt, iterations)


def test_base64_decoder() -> None:
    decoded = decode_base64_keys(["OE5kWmhyMVJjZG9hVnlIWURyUE9XdVp1OFdsQmxUd0k="])
    assert decoded == [SecretKey(b"8NdZhr1RcdoaVyHYDrPOWuZu8WlBlTwI")]


def test_hex_decoder() -> None:
    decoded = decode_hex_keys(
        ["384e645a6872315263646f61567948594472504f57755a7538576c426c547749"]
    )
    assert decoded == [SecretKey(b"8NdZhr1RcdoaVyHYDrPOWuZu8WlBlTwI")]


@pytest.mark.parametrize(
    "decoder, value",
    [
        (decode_base64_keys, "not base64!"),
        (decode_base64_keys, base64.b64encode(b"short").decode()),
        (decode_hex_keys, "zz"),
        (decode_hex_keys, "abcd"),
    ],
)
def test_decoder_errors(decoder, value) -> None:
    with pytest.raises(ConfigError, match="Key #0"):
        decoder([value])


def test_generate_key() -> None:
    assert len(generate_key()) == 32
    assert generate_key() != generate_key()
