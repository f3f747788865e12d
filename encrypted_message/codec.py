"""
Payload codecs turning application values into bytes before encryption.
"""

from __future__ import annotations

import json
from typing import Any, Protocol

from .errors import SerializationError


class PayloadCodec(Protocol):
    def serialize(self, value: Any) -> bytes:
        ...

    def deserialize(self, data: bytes) -> Any:
        ...


class JsonCodec:
    """
    JSON payload codec.

    Output is canonical (sorted keys, compact separators) so deterministic
    encryption of equal objects produces equal envelopes.
    """

    def serialize(self, value: Any) -> bytes:
        try:
            return json.dumps(
                value, sort_keys=True, separators=(",", ":"), ensure_ascii=False
            ).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise SerializationError(
                f"The payload could not be serialized into JSON: {e}"
            ) from e

    def deserialize(self, data: bytes) -> Any:
        try:
            return json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise SerializationError(
                f"The payload could not be deserialized from JSON: {e}"
            ) from e


class BytesCodec:
    """Pass-through codec for payloads that are already bytes."""

    def serialize(self, value: Any) -> bytes:
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise SerializationError(
                f"BytesCodec expects bytes, got {type(value).__name__}"
            )
        return bytes(value)

    def deserialize(self, data: bytes) -> bytes:
        return bytes(data)
