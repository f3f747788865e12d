"""
Envelope wire format.

An Envelope is the self-describing unit stored by the persistence layer:
scheme tag, key id, nonce and ciphertext (tag appended). The JSON shape is
versioned:

    {"v": 1, "scheme": "randomized", "kid": "3f2a...", "nonce": "<b64>",
     "ciphertext": "<b64>"}

This module does no cryptography; it only validates structure.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from .crypto import NONCE_SIZE, TAG_SIZE
from .errors import MalformedEnvelopeError
from .key_config import EncryptionMode

WIRE_VERSION: int = 1


@dataclass(frozen=True)
class Envelope:
    """Encrypted payload plus the metadata needed to decrypt it."""

    scheme: EncryptionMode
    nonce: bytes
    ciphertext: bytes  # Ciphertext + authentication tag
    key_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON-compatible wire shape."""
        data: Dict[str, Any] = {
            "v": WIRE_VERSION,
            "scheme": self.scheme.value,
            "nonce": _b64encode(self.nonce),
            "ciphertext": _b64encode(self.ciphertext),
        }
        if self.key_id is not None:
            data["kid"] = self.key_id
        return data

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        nonce_size: int = NONCE_SIZE,
        tag_size: int = TAG_SIZE,
    ) -> Envelope:
        """
        Parse the wire shape.

        Args:
            data: Decoded JSON object
            nonce_size: Nonce length required by the AEAD primitive
            tag_size: Authentication tag length of the AEAD primitive

        Raises:
            MalformedEnvelopeError: If fields are missing, unknown or malformed
        """
        if not isinstance(data, Mapping):
            raise MalformedEnvelopeError("Envelope must be a JSON object")

        version = data.get("v", WIRE_VERSION)
        if type(version) is not int or version != WIRE_VERSION:
            raise MalformedEnvelopeError(f"Unsupported envelope version: {version!r}")

        missing = [f for f in ("scheme", "nonce", "ciphertext") if f not in data]
        if missing:
            raise MalformedEnvelopeError(
                f"Envelope missing required fields: {', '.join(missing)}"
            )

        try:
            scheme = EncryptionMode(data["scheme"])
        except (TypeError, ValueError):
            raise MalformedEnvelopeError(
                f"Unknown envelope scheme: {data['scheme']!r}"
            ) from None

        nonce = _b64decode(data["nonce"], "nonce")
        if len(nonce) != nonce_size:
            raise MalformedEnvelopeError(
                f"Invalid nonce size: expected {nonce_size}, got {len(nonce)}"
            )

        ciphertext = _b64decode(data["ciphertext"], "ciphertext")
        if len(ciphertext) < tag_size:
            raise MalformedEnvelopeError("Ciphertext shorter than authentication tag")

        key_id = data.get("kid")
        if key_id is not None and not isinstance(key_id, str):
            raise MalformedEnvelopeError("Envelope key id must be a string")

        return cls(scheme=scheme, nonce=nonce, ciphertext=ciphertext, key_id=key_id)

    def to_json(self) -> str:
        """Serialize to canonical JSON (sorted keys, compact separators)."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))

    @classmethod
    def from_json(
        cls,
        json_str: str | bytes,
        nonce_size: int = NONCE_SIZE,
        tag_size: int = TAG_SIZE,
    ) -> Envelope:
        """
        Deserialize from a JSON string.

        Raises:
            MalformedEnvelopeError: If the input is not valid envelope JSON
        """
        try:
            data = json.loads(json_str)
        except (TypeError, ValueError) as e:
            raise MalformedEnvelopeError(f"Invalid envelope JSON: {e}") from e
        return cls.from_dict(data, nonce_size=nonce_size, tag_size=tag_size)


def _b64encode(data: bytes) -> str:
    return base64.standard_b64encode(data).decode("ascii")


def _b64decode(value: Any, field_name: str) -> bytes:
    if not isinstance(value, str):
        raise MalformedEnvelopeError(f"Envelope {field_name} must be a base64 string")
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedEnvelopeError(f"Base64 decode error in {field_name}: {e}") from e
