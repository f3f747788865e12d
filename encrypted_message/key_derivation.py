"""
Key generation, derivation and decoding helpers.

Use derive_key_from() for human-provided secrets, which are likely to be
weak; use the decoders for keys generated with e.g. `openssl rand -hex 32`.
"""

from __future__ import annotations

import base64
import binascii
from typing import Iterable, List

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .crypto import KEY_SIZE, SecretKey
from .errors import ConfigError, CryptoError

DEFAULT_KEY_DERIVATION_ITERATIONS: int = 600_000


def derive_key_from(raw_key: bytes, salt: bytes, iterations: int) -> SecretKey:
    """
    Derive a 256-bit key from a raw secret with PBKDF2-HMAC-SHA256.

    Args:
        raw_key: Secret material (password, passphrase, ...)
        salt: Key derivation salt
        iterations: PBKDF2 iteration count

    Returns:
        Derived SecretKey

    Raises:
        ConfigError: If the secret or salt is empty or iterations < 1
    """
    if not raw_key:
        raise ConfigError("Raw key must not be empty")
    if not salt:
        raise ConfigError("Key derivation salt must not be empty")
    if iterations < 1:
        raise ConfigError(f"Invalid key derivation iterations: {iterations}")

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=salt,
        iterations=iterations,
    )
    return SecretKey(kdf.derive(raw_key))


def generate_key() -> SecretKey:
    """Generate a fresh random 256-bit key."""
    return SecretKey.generate()


def decode_base64_keys(keys: Iterable[str]) -> List[SecretKey]:
    """
    Decode base64-encoded 32-byte keys.

    Raises:
        ConfigError: If a key is not valid base64 or not 32 bytes long
    """
    decoded = []
    for index, encoded in enumerate(keys):
        try:
            raw = base64.b64decode(encoded.strip(), validate=True)
        except (binascii.Error, ValueError):
            raise ConfigError(f"Key #{index} is not valid base64") from None
        decoded.append(_to_secret_key(raw, index))
    return decoded


def decode_hex_keys(keys: Iterable[str]) -> List[SecretKey]:
    """
    Decode hex-encoded 32-byte keys.

    Raises:
        ConfigError: If a key is not valid hex or not 32 bytes long
    """
    decoded = []
    for index, encoded in enumerate(keys):
        try:
            raw = bytes.fromhex(encoded.strip())
        except ValueError:
            raise ConfigError(f"Key #{index} is not valid hex") from None
        decoded.append(_to_secret_key(raw, index))
    return decoded


def _to_secret_key(raw: bytes, index: int) -> SecretKey:
    try:
        return SecretKey(raw)
    except CryptoError as e:
        # Never echo key material in the message
        raise ConfigError(f"Key #{index} is invalid: {e}") from None
