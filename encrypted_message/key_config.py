"""
Key configuration consumed by the encrypted message engine.

A KeyConfig holds one current key, used for every new encryption, and an
ordered list of retired keys that are only tried during decryption. This is
what makes key rotation transparent to callers.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable, Iterator, Sequence, Tuple

from .crypto import SecretKey
from .errors import ConfigError, CryptoError

logger = logging.getLogger(__name__)


class EncryptionMode(Enum):
    """Nonce derivation mode; the value doubles as the envelope scheme tag."""

    RANDOMIZED = "randomized"  # Fresh random nonce per encryption
    DETERMINISTIC = "deterministic"  # Nonce derived from key, context, payload

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_str(cls, s: str) -> EncryptionMode:
        """Parse from string."""
        try:
            return cls(s.strip().lower())
        except (AttributeError, ValueError):
            raise ConfigError(f"Invalid encryption mode: {s!r}") from None


class KeyConfig:
    """
    Immutable set of keys for a single encryption mode.

    Keys are owned by the config: wipe() (or leaving a with-block) zeroes
    every key it holds, after which the config can no longer encrypt.
    """

    __slots__ = ("_mode", "_current_key", "_retired_keys")

    def __init__(
        self,
        mode: EncryptionMode,
        current_key: SecretKey | bytes | bytearray,
        retired_keys: Iterable[SecretKey | bytes | bytearray] = (),
    ) -> None:
        """
        Args:
            mode: Encryption mode every envelope of this config uses
            current_key: Key used for encryption (32 bytes)
            retired_keys: Keys only used for decryption, in trial order

        Raises:
            ConfigError: If the mode or any key is invalid
        """
        if not isinstance(mode, EncryptionMode):
            raise ConfigError(f"Invalid encryption mode: {mode!r}")
        if current_key is None:
            raise ConfigError("No current key configured")

        self._mode = mode
        self._current_key = _as_secret_key(current_key)
        self._retired_keys: Tuple[SecretKey, ...] = tuple(
            _as_secret_key(key) for key in retired_keys
        )

    @classmethod
    def from_keys(
        cls, mode: EncryptionMode, keys: Sequence[SecretKey | bytes | bytearray]
    ) -> KeyConfig:
        """
        Build a config from an ordered key list.

        The first key is the current key; the rest are retired keys tried
        in the order given.

        Raises:
            ConfigError: If no keys are provided
        """
        if not keys:
            raise ConfigError("No keys were provided in the configuration")
        return cls(mode, keys[0], keys[1:])

    @property
    def mode(self) -> EncryptionMode:
        return self._mode

    @property
    def current_key_id(self) -> str:
        return self.resolve_encryption_key().key_id

    @property
    def retired_keys(self) -> Tuple[SecretKey, ...]:
        return self._retired_keys

    def resolve_encryption_key(self) -> SecretKey:
        """
        Return the key used for new encryptions.

        Raises:
            ConfigError: If the config has been wiped
        """
        if self._current_key.is_wiped:
            raise ConfigError("Current key has been wiped")
        return self._current_key

    def candidate_decryption_keys(self) -> Iterator[SecretKey]:
        """Yield the current key, then retired keys in configuration order."""
        yield self.resolve_encryption_key()
        for key in self._retired_keys:
            if not key.is_wiped:
                yield key

    def rotate(self, new_key: SecretKey | bytes | bytearray) -> KeyConfig:
        """
        Return a new config with new_key as current key.

        The old current key becomes the first retired key. Key objects are
        shared with this config, so wiping either one wipes both.
        """
        rotated = KeyConfig(
            self._mode,
            new_key,
            (self._current_key,) + self._retired_keys,
        )
        logger.info(
            "Rotated %s key config: %s -> %s",
            self._mode,
            self._current_key.key_id,
            rotated._current_key.key_id,
        )
        return rotated

    def wipe(self) -> None:
        """Zero every key held by this config."""
        self._current_key.wipe()
        for key in self._retired_keys:
            key.wipe()

    def __enter__(self) -> KeyConfig:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.wipe()

    def __repr__(self) -> str:
        return (
            f"KeyConfig(mode={self._mode.value!r}, "
            f"current_key_id={self._current_key.key_id!r}, "
            f"retired_keys={len(self._retired_keys)})"
        )


def _as_secret_key(key: SecretKey | bytes | bytearray) -> SecretKey:
    if isinstance(key, SecretKey):
        if key.is_wiped:
            raise ConfigError("Key material has been wiped")
        return key
    try:
        return SecretKey(key)
    except CryptoError as e:
        raise ConfigError(str(e)) from e
