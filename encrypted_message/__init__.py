"""
Encrypted Message Library

Field-level envelope encryption for values stored in a database column,
with key rotation, randomized or deterministic encryption and context
binding.

Quick Start
-----------
```python
from encrypted_message import (
    EncryptedMessage,
    EncryptionMode,
    KeyConfig,
    SecretKey,
    column_context,
)

config = KeyConfig(EncryptionMode.RANDOMIZED, SecretKey.generate())
message = EncryptedMessage(config)

context = column_context("users", "ssn")
envelope = message.encrypt_value("123-45-6789", context)
stored = envelope.to_json()

value = message.decrypt_value(message.envelope_from_json(stored), context)
```

Key Features
------------
- **AES-256-GCM / ChaCha20-Poly1305**: Authenticated encryption via `cryptography`
- **Key Rotation**: Current key encrypts, retired keys still decrypt
- **Deterministic Mode**: Same value, same envelope, so columns can be searched
- **Context Binding**: Envelopes only decrypt for the field they were made for
- **PostgreSQL**: asyncpg-backed encrypted JSONB columns
- **Memory Security**: Key bytes wiped on release
"""

import logging

__version__ = "0.1.0"

# =============================================================================
# Crypto Exports
# =============================================================================

from .crypto import (
    KEY_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    AeadCipher,
    AesGcmCipher,
    ChaCha20Poly1305Cipher,
    SecretKey,
    generate_random_bytes,
)

# =============================================================================
# Error Exports
# =============================================================================

from .errors import (
    ConfigError,
    CryptoError,
    DecryptionFailedError,
    EncryptedMessageError,
    EncryptionFailedError,
    MalformedEnvelopeError,
    SchemeMismatchError,
    SerializationError,
    StorageError,
)

# =============================================================================
# Engine Exports
# =============================================================================

from .codec import BytesCodec, JsonCodec, PayloadCodec
from .context import as_context_bytes, column_context
from .envelope import WIRE_VERSION, Envelope
from .key_config import EncryptionMode, KeyConfig
from .message import EncryptedMessage
from .strategy import DeterministicStrategy, RandomizedStrategy, strategy_for

# =============================================================================
# Key & Config Exports
# =============================================================================

from .config import load_key_config
from .key_derivation import (
    decode_base64_keys,
    decode_hex_keys,
    derive_key_from,
    generate_key,
)

# =============================================================================
# PostgreSQL Exports
# =============================================================================

from .postgres import EncryptedColumn, PostgresEncryptedStorage, set_json_codecs

logging.getLogger(__name__).addHandler(logging.NullHandler())

# =============================================================================
# Public API
# =============================================================================

__all__ = [
    # Version
    "__version__",
    # Crypto
    "KEY_SIZE",
    "NONCE_SIZE",
    "TAG_SIZE",
    "AeadCipher",
    "AesGcmCipher",
    "ChaCha20Poly1305Cipher",
    "SecretKey",
    "generate_random_bytes",
    # Errors
    "EncryptedMessageError",
    "ConfigError",
    "CryptoError",
    "EncryptionFailedError",
    "DecryptionFailedError",
    "SchemeMismatchError",
    "MalformedEnvelopeError",
    "SerializationError",
    "StorageError",
    # Engine
    "EncryptedMessage",
    "EncryptionMode",
    "KeyConfig",
    "Envelope",
    "WIRE_VERSION",
    "RandomizedStrategy",
    "DeterministicStrategy",
    "strategy_for",
    "PayloadCodec",
    "JsonCodec",
    "BytesCodec",
    "as_context_bytes",
    "column_context",
    # Keys & config
    "load_key_config",
    "derive_key_from",
    "generate_key",
    "decode_base64_keys",
    "decode_hex_keys",
    # PostgreSQL
    "EncryptedColumn",
    "PostgresEncryptedStorage",
    "set_json_codecs",
]
