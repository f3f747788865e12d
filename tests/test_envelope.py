"""
Tests for the envelope wire format.
"""

from __future__ import annotations

import base64
import json

import pytest

from encrypted_message import (
    TAG_SIZE,
    EncryptionMode,
    Envelope,
    MalformedEnvelopeError,
)


def _b64(data: bytes) -> str:
    return base64.standard_b64encode(data).decode("ascii")


@pytest.fixture
def envelope() -> Envelope:
    return Envelope(
        scheme=EncryptionMode.DETERMINISTIC,
        nonce=b"\x07" * 12,
        ciphertext=b"\x09" * (TAG_SIZE + 4),
        key_id="0011223344556677",
    )


def test_to_dict_shape(envelope: Envelope) -> None:
    assert envelope.to_dict() == {
        "v": 1,
        "scheme": "deterministic",
        "kid": "0011223344556677",
        "nonce": _b64(b"\x07" * 12),
        "ciphertext": _b64(b"\x09" * (TAG_SIZE + 4)),
    }


def test_json_round_trip(envelope: Envelope) -> None:
    assert Envelope.from_json(envelope.to_json()) == envelope


def test_to_json_is_canonical(envelope: Envelope) -> None:
    encoded = envelope.to_json()
    assert " " not in encoded
    assert list(json.loads(encoded)) == sorted(json.loads(encoded))


def test_optional_fields_may_be_absent() -> None:
    parsed = Envelope.from_dict(
        {
            "scheme": "randomized",
            "nonce": _b64(b"\x01" * 12),
            "ciphertext": _b64(b"\x02" * TAG_SIZE),
        }
    )
    assert parsed.scheme is EncryptionMode.RANDOMIZED
    assert parsed.key_id is None
    assert "kid" not in parsed.to_dict()


@pytest.mark.parametrize("field", ["scheme", "nonce", "ciphertext"])
def test_missing_required_field(envelope: Envelope, field: str) -> None:
    data = envelope.to_dict()
    del data[field]
    with pytest.raises(MalformedEnvelopeError, match=field):
        Envelope.from_dict(data)


@pytest.mark.parametrize(
    "field, value",
    [
        ("scheme", "sometimes"),
        ("scheme", 3),
        ("v", 2),
        ("v", True),
        ("v", 1.0),
        ("v", "1"),
        ("nonce", _b64(b"\x01" * 11)),
        ("nonce", "not base64!"),
        ("nonce", 12),
        ("ciphertext", _b64(b"\x02" * (TAG_SIZE - 1))),
        ("kid", 42),
    ],
)
def test_malformed_field(envelope: Envelope, field: str, value) -> None:
    data = envelope.to_dict()
    data[field] = value
    with pytest.raises(MalformedEnvelopeError):
        Envelope.from_dict(data)


@pytest.mark.parametrize("raw", ["not json", "[1, 2]", "null", b"\xff"])
def test_invalid_json(raw) -> None:
    with pytest.raises(MalformedEnvelopeError):
        Envelope.from_json(raw)


def test_nonce_size_is_primitive_specific(envelope: Envelope) -> None:
    with pytest.raises(MalformedEnvelopeError, match="nonce size"):
        Envelope.from_json(envelope.to_json(), nonce_size=24)
