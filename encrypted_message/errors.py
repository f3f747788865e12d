"""
Exception classes for encrypted message operations.

Every failure surfaced by the library derives from EncryptedMessageError.
DecryptionFailedError intentionally does not say whether the key, the
ciphertext or the context was wrong.
"""

from __future__ import annotations


class EncryptedMessageError(Exception):
    """Base exception for all encrypted message operations."""

    pass


class ConfigError(EncryptedMessageError):
    """Key configuration is missing or invalid."""

    pass


class CryptoError(EncryptedMessageError):
    """Low-level AEAD primitive failure (bad key size, authentication failure)."""

    pass


class EncryptionFailedError(EncryptedMessageError):
    """The AEAD primitive failed to encrypt a payload."""

    pass


class DecryptionFailedError(EncryptedMessageError):
    """The envelope could not be decrypted with any of the candidate keys."""

    pass


class SchemeMismatchError(EncryptedMessageError):
    """The envelope's scheme tag does not match the configured encryption mode."""

    pass


class MalformedEnvelopeError(EncryptedMessageError):
    """The envelope could not be decoded from its wire representation."""

    pass


class SerializationError(EncryptedMessageError):
    """A payload could not be serialized or deserialized by its codec."""

    pass


class StorageError(EncryptedMessageError):
    """Storage backend error (database, connection pool)."""

    pass
