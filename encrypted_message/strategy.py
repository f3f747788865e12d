"""
Nonce derivation strategies.

- RandomizedStrategy: fresh random nonce for every encryption
- DeterministicStrategy: nonce derived from (key id, context, payload), so the
  same inputs always produce the same envelope and can be searched for

Strategies are looked up by EncryptionMode with strategy_for(); they share a
protocol, not a base class.
"""

from __future__ import annotations

import struct
from typing import Dict, Protocol

from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from .crypto import SecretKey, generate_random_bytes
from .errors import ConfigError
from .key_config import EncryptionMode

_NONCE_SUBKEY_INFO = b"encrypted-message/deterministic-nonce/v1"


class NonceStrategy(Protocol):
    mode: EncryptionMode

    def derive_nonce(
        self, key: SecretKey, context: bytes, payload: bytes, nonce_size: int
    ) -> bytes:
        ...


class RandomizedStrategy:
    """
    Random nonce, regardless of the payload.

    Encrypting the same payload twice yields different envelopes, which
    makes them impossible to query without decrypting all data.
    """

    mode = EncryptionMode.RANDOMIZED

    def derive_nonce(
        self, key: SecretKey, context: bytes, payload: bytes, nonce_size: int
    ) -> bytes:
        return generate_random_bytes(nonce_size)

    def __repr__(self) -> str:
        return "RandomizedStrategy()"


class DeterministicStrategy:
    """
    Nonce derived with HMAC-SHA256 over (key id, context, payload).

    The HMAC key is an HKDF subkey of the encryption key, so the AEAD key is
    never reused as a MAC key. Identical inputs give an identical nonce and
    therefore an identical envelope; repetition of values is visible to
    anyone who can read the ciphertexts.
    """

    mode = EncryptionMode.DETERMINISTIC

    def derive_nonce(
        self, key: SecretKey, context: bytes, payload: bytes, nonce_size: int
    ) -> bytes:
        if nonce_size > hashes.SHA256.digest_size:
            raise ConfigError(f"Deterministic nonce size too large: {nonce_size}")

        with key.exposed() as key_bytes:
            subkey = bytearray(
                HKDF(
                    algorithm=hashes.SHA256(),
                    length=32,
                    salt=None,
                    info=_NONCE_SUBKEY_INFO,
                ).derive(key_bytes)
            )

        try:
            mac = hmac.HMAC(subkey, hashes.SHA256())
            # Length prefixes keep (context, payload) splits unambiguous
            for part in (key.key_id.encode("ascii"), context, payload):
                mac.update(struct.pack(">Q", len(part)))
                mac.update(part)
            return mac.finalize()[:nonce_size]
        finally:
            for i in range(len(subkey)):
                subkey[i] = 0

    def __repr__(self) -> str:
        return "DeterministicStrategy()"


_STRATEGIES: Dict[EncryptionMode, NonceStrategy] = {
    EncryptionMode.RANDOMIZED: RandomizedStrategy(),
    EncryptionMode.DETERMINISTIC: DeterministicStrategy(),
}


def strategy_for(mode: EncryptionMode) -> NonceStrategy:
    """
    Return the nonce strategy for an encryption mode.

    Raises:
        ConfigError: If the mode has no strategy
    """
    try:
        return _STRATEGIES[mode]
    except KeyError:
        raise ConfigError(f"No strategy for encryption mode: {mode!r}") from None
