"""
Cryptographic primitives used by the envelope engine.

This module provides:
- SecretKey: 32-byte key wrapper with explicit and best-effort zeroization
- AeadCipher: Protocol every AEAD primitive must satisfy
- AesGcmCipher: AES-256-GCM (default primitive)
- ChaCha20Poly1305Cipher: ChaCha20-Poly1305
"""

from __future__ import annotations

import secrets
from contextlib import contextmanager
from typing import Iterator, Optional, Protocol

from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from .errors import CryptoError

# Cryptographic constants
KEY_SIZE: int = 32  # 256 bits
NONCE_SIZE: int = 12  # 96 bits
TAG_SIZE: int = 16  # 128 bits

_KEY_ID_LABEL = b"encrypted-message/key-id/v1"


class SecretKey:
    """
    Secret key wrapper that zeroes its memory on release.

    Key bytes live in a bytearray so they can be overwritten in place.
    Call wipe() (or use the key as a context manager) for deterministic
    cleanup; __del__ is a best-effort fallback since the garbage collector
    gives no timing guarantee.
    """

    __slots__ = ("_bytes", "_key_id")

    def __init__(self, key_bytes: bytes | bytearray) -> None:
        """
        Create a SecretKey from raw bytes.

        Args:
            key_bytes: Raw key material, exactly 32 bytes

        Raises:
            CryptoError: If the material is not bytes or has the wrong length
        """
        if not isinstance(key_bytes, (bytes, bytearray)):
            raise CryptoError("Key must be bytes or bytearray")
        if len(key_bytes) != KEY_SIZE:
            raise CryptoError(
                f"Invalid key size: expected {KEY_SIZE}, got {len(key_bytes)}"
            )
        if not any(key_bytes):
            raise CryptoError("Key material must not be all zeros")
        self._bytes = bytearray(key_bytes)
        self._key_id = _fingerprint(self._bytes)

    @classmethod
    def generate(cls) -> SecretKey:
        """Generate a cryptographically secure random 32-byte key."""
        return cls(secrets.token_bytes(KEY_SIZE))

    @property
    def key_id(self) -> str:
        """Non-secret fingerprint identifying this key inside envelopes."""
        return self._key_id

    @property
    def is_wiped(self) -> bool:
        return not any(self._bytes)

    @contextmanager
    def exposed(self) -> Iterator[bytearray]:
        """
        Expose the key bytes for the duration of a single primitive call.

        The yielded buffer is a copy that is zeroed when the with-block
        exits; callers must not keep it beyond the block.
        """
        if self.is_wiped:
            raise CryptoError("Key material has been wiped")
        buffer = bytearray(self._bytes)
        try:
            yield buffer
        finally:
            for i in range(len(buffer)):
                buffer[i] = 0

    def wipe(self) -> None:
        """Overwrite the key bytes with zeros."""
        for i in range(len(self._bytes)):
            self._bytes[i] = 0

    def __enter__(self) -> SecretKey:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.wipe()

    def __len__(self) -> int:
        """Return key length in bytes."""
        return len(self._bytes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SecretKey):
            return NotImplemented
        return secrets.compare_digest(self._bytes, other._bytes)

    def __hash__(self) -> int:
        return hash(self._key_id)

    def __repr__(self) -> str:
        """Redacted representation to prevent accidental key disclosure."""
        return f"SecretKey(key_id={self._key_id!r}, [REDACTED])"

    def __del__(self) -> None:
        """Zero memory on deletion (best-effort)."""
        if hasattr(self, "_bytes"):
            self.wipe()


def _fingerprint(key_bytes: bytearray) -> str:
    h = hmac.HMAC(key_bytes, hashes.SHA256())
    h.update(_KEY_ID_LABEL)
    return h.finalize()[:8].hex()


class AeadCipher(Protocol):
    """Authenticated encryption primitive consumed by the envelope engine."""

    NAME: str
    KEY_SIZE: int
    NONCE_SIZE: int
    TAG_SIZE: int

    def encrypt(
        self, key: SecretKey, nonce: bytes, plaintext: bytes, aad: Optional[bytes]
    ) -> bytes:
        ...

    def decrypt(
        self, key: SecretKey, nonce: bytes, ciphertext: bytes, aad: Optional[bytes]
    ) -> bytes:
        ...


class _CryptographyAead:
    """
    Shared plumbing for the AEAD classes exposed by `cryptography`.

    Subclasses only name the primitive; both bundled primitives take a
    32-byte key and a 96-bit nonce and append a 128-bit tag.
    """

    NAME: str = ""
    KEY_SIZE: int = KEY_SIZE
    NONCE_SIZE: int = NONCE_SIZE
    TAG_SIZE: int = TAG_SIZE

    @staticmethod
    def _primitive(key_bytes: bytes):
        raise NotImplementedError

    @classmethod
    def encrypt(
        cls,
        key: SecretKey,
        nonce: bytes,
        plaintext: bytes,
        aad: Optional[bytes] = None,
    ) -> bytes:
        """
        Encrypt plaintext, returning ciphertext with the tag appended.

        Raises:
            CryptoError: If key/nonce size is invalid or encryption fails
        """
        cls._check_sizes(key, nonce)
        with key.exposed() as key_bytes:
            try:
                return cls._primitive(key_bytes).encrypt(nonce, plaintext, aad)
            except Exception as e:
                raise CryptoError(f"Encryption error: {e}") from e

    @classmethod
    def decrypt(
        cls,
        key: SecretKey,
        nonce: bytes,
        ciphertext: bytes,
        aad: Optional[bytes] = None,
    ) -> bytes:
        """
        Decrypt and authenticate ciphertext (tag appended).

        Raises:
            CryptoError: If key/nonce size is invalid or authentication fails
        """
        cls._check_sizes(key, nonce)
        if len(ciphertext) < cls.TAG_SIZE:
            raise CryptoError("Ciphertext shorter than authentication tag")
        with key.exposed() as key_bytes:
            try:
                return cls._primitive(key_bytes).decrypt(nonce, ciphertext, aad)
            except Exception:
                # Generic error to prevent oracle attacks
                raise CryptoError("Decryption failed") from None

    @classmethod
    def _check_sizes(cls, key: SecretKey, nonce: bytes) -> None:
        if len(key) != cls.KEY_SIZE:
            raise CryptoError(
                f"Invalid key size: expected {cls.KEY_SIZE}, got {len(key)}"
            )
        if len(nonce) != cls.NONCE_SIZE:
            raise CryptoError(
                f"Invalid nonce size: expected {cls.NONCE_SIZE}, got {len(nonce)}"
            )


class AesGcmCipher(_CryptographyAead):
    """AES-256-GCM authenticated encryption."""

    NAME = "aes-256-gcm"

    @staticmethod
    def _primitive(key_bytes: bytes) -> AESGCM:
        return AESGCM(key_bytes)


class ChaCha20Poly1305Cipher(_CryptographyAead):
    """ChaCha20-Poly1305 authenticated encryption."""

    NAME = "chacha20-poly1305"

    @staticmethod
    def _primitive(key_bytes: bytes) -> ChaCha20Poly1305:
        return ChaCha20Poly1305(key_bytes)


def generate_random_bytes(length: int) -> bytes:
    """
    Generate cryptographically secure random bytes.

    Args:
        length: Number of bytes to generate

    Returns:
        Random bytes of specified length
    """
    return secrets.token_bytes(length)
