"""
Encrypted message engine.

EncryptedMessage turns payload bytes plus a context into an Envelope and
back, using the KeyConfig's current key for encryption and every candidate
key for decryption.

Encrypt flow:
1. Resolve the current key
2. Derive the nonce with the strategy matching the config's mode
3. AEAD-encrypt with aad = context
4. Wrap {scheme, key id, nonce, ciphertext} in an Envelope

Decrypt flow:
1. Reject envelopes whose scheme differs from the configured mode
2. Try candidate keys in order (the key matching the envelope's key id first)
3. Return the first successful plaintext, else fail with one opaque error
"""

from __future__ import annotations

import logging
from typing import Any, Iterator, Optional

from .codec import JsonCodec, PayloadCodec
from .context import ContextLike, as_context_bytes
from .crypto import AeadCipher, AesGcmCipher, SecretKey
from .envelope import Envelope
from .errors import (
    CryptoError,
    DecryptionFailedError,
    EncryptionFailedError,
    MalformedEnvelopeError,
    SchemeMismatchError,
)
from .key_config import EncryptionMode, KeyConfig
from .strategy import strategy_for

logger = logging.getLogger(__name__)


class EncryptedMessage:
    """
    Envelope encryption engine bound to one KeyConfig.

    Stateless between calls and safe to share across threads: the config is
    read-only and each call works on its own buffers.
    """

    def __init__(
        self,
        key_config: KeyConfig,
        cipher: Optional[AeadCipher] = None,
        codec: Optional[PayloadCodec] = None,
    ) -> None:
        """
        Args:
            key_config: Keys and encryption mode
            cipher: AEAD primitive (default: AES-256-GCM)
            codec: Payload codec used by encrypt_value/decrypt_value (default: JSON)
        """
        self._key_config = key_config
        self._cipher: AeadCipher = cipher if cipher is not None else AesGcmCipher()
        self._codec: PayloadCodec = codec if codec is not None else JsonCodec()
        self._strategy = strategy_for(key_config.mode)

    @property
    def mode(self) -> EncryptionMode:
        return self._key_config.mode

    @property
    def key_config(self) -> KeyConfig:
        return self._key_config

    @property
    def cipher(self) -> AeadCipher:
        return self._cipher

    def encrypt(self, payload: bytes, context: ContextLike) -> Envelope:
        """
        Encrypt payload bytes under the current key.

        Args:
            payload: Plaintext bytes
            context: Usage-site identifier, authenticated as AAD

        Returns:
            Envelope tagged with the configured scheme and current key id

        Raises:
            ConfigError: If the key config cannot provide a current key
            EncryptionFailedError: If the AEAD primitive fails
            TypeError: If payload is not bytes-like
        """
        aad = as_context_bytes(context)
        if not isinstance(payload, (bytes, bytearray, memoryview)):
            raise TypeError(
                f"Payload must be bytes-like, got {type(payload).__name__}; "
                "use encrypt_value() for other values"
            )
        payload = bytes(payload)
        key = self._key_config.resolve_encryption_key()

        nonce = self._strategy.derive_nonce(key, aad, payload, self._cipher.NONCE_SIZE)
        try:
            ciphertext = self._cipher.encrypt(key, nonce, payload, aad)
        except CryptoError as e:
            raise EncryptionFailedError("The payload could not be encrypted") from e

        return Envelope(
            scheme=self._strategy.mode,
            nonce=nonce,
            ciphertext=ciphertext,
            key_id=key.key_id,
        )

    def decrypt(self, envelope: Envelope, context: ContextLike) -> bytes:
        """
        Decrypt an envelope, trying every candidate key until one works.

        Raises:
            SchemeMismatchError: If the envelope scheme differs from the config mode
            MalformedEnvelopeError: If the nonce size does not fit the primitive
            DecryptionFailedError: If no candidate key authenticates the envelope
        """
        if envelope.scheme is not self.mode:
            raise SchemeMismatchError(
                f"Envelope scheme {envelope.scheme.value!r} does not match "
                f"configured mode {self.mode.value!r}"
            )
        if len(envelope.nonce) != self._cipher.NONCE_SIZE:
            raise MalformedEnvelopeError(
                f"Invalid nonce size: expected {self._cipher.NONCE_SIZE}, "
                f"got {len(envelope.nonce)}"
            )

        aad = as_context_bytes(context)
        current_key_id = self._key_config.current_key_id

        for key in self._ordered_candidates(envelope.key_id):
            try:
                plaintext = self._cipher.decrypt(key, envelope.nonce, envelope.ciphertext, aad)
            except CryptoError:
                continue

            if key.key_id != current_key_id:
                logger.debug("Decrypted envelope with retired key %s", key.key_id)
            return plaintext

        raise DecryptionFailedError(
            "The payload could not be decrypted with any of the available keys"
        )

    def encrypt_value(self, value: Any, context: ContextLike) -> Envelope:
        """Serialize a value with the payload codec, then encrypt it."""
        return self.encrypt(self._codec.serialize(value), context)

    def decrypt_value(self, envelope: Envelope, context: ContextLike) -> Any:
        """Decrypt an envelope and deserialize the payload with the codec."""
        return self._codec.deserialize(self.decrypt(envelope, context))

    def needs_rotation(self, envelope: Envelope, context: Optional[ContextLike] = None) -> bool:
        """
        True if the envelope was not encrypted under the current key.

        Envelopes that name a key id are judged by it. Envelopes without one
        are only judged when a context is given: they need rotation unless
        the current key alone authenticates them.
        """
        current_key_id = self._key_config.current_key_id
        if envelope.key_id is not None:
            return envelope.key_id != current_key_id
        if context is None:
            return False

        key = self._key_config.resolve_encryption_key()
        try:
            self._cipher.decrypt(
                key, envelope.nonce, envelope.ciphertext, as_context_bytes(context)
            )
        except CryptoError:
            return True
        return False

    def reencrypt(self, envelope: Envelope, context: ContextLike) -> Envelope:
        """
        Re-encrypt an envelope under the current key.

        Used to migrate data after key rotation; the payload is never
        deserialized.
        """
        return self.encrypt(self.decrypt(envelope, context), context)

    def envelope_from_json(self, json_str: str | bytes) -> Envelope:
        """Parse envelope JSON, validating sizes against this engine's primitive."""
        return Envelope.from_json(
            json_str, nonce_size=self._cipher.NONCE_SIZE, tag_size=self._cipher.TAG_SIZE
        )

    def _ordered_candidates(self, key_id: Optional[str]) -> Iterator[SecretKey]:
        candidates = self._key_config.candidate_decryption_keys()
        if key_id is None:
            yield from candidates
            return

        deferred = []
        for key in candidates:
            if key.key_id == key_id:
                yield key
                break
            deferred.append(key)
        else:
            yield from deferred
            return

        yield from deferred
        yield from candidates

    def __repr__(self) -> str:
        return f"EncryptedMessage(key_config={self._key_config!r}, cipher={self._cipher.NAME!r})"
