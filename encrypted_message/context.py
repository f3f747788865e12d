"""
Encryption context helpers.

The context is authenticated alongside the ciphertext (AEAD associated data)
but never encrypted. Using a distinct context per logical field prevents an
envelope copied from one column from decrypting in another.
"""

from __future__ import annotations

from typing import Union

from .errors import ConfigError

ContextLike = Union[bytes, bytearray, memoryview, str]


def as_context_bytes(context: ContextLike) -> bytes:
    """
    Normalize a caller-supplied context to bytes.

    Strings are UTF-8 encoded; an empty context is allowed.

    Raises:
        ConfigError: If the context has an unsupported type
    """
    if isinstance(context, str):
        return context.encode("utf-8")
    if isinstance(context, (bytes, bytearray, memoryview)):
        return bytes(context)
    raise ConfigError(f"Context must be bytes or str, got {type(context).__name__}")


def column_context(table: str, column: str) -> bytes:
    """Build the conventional `table.column` context for a database column."""
    if not table or not column:
        raise ConfigError("Table and column names are required")
    return f"{table}.{column}".encode("utf-8")
