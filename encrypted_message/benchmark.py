"""
Encrypted Message Benchmark CLI.

Usage:
    encrypted-message-benchmark [iterations]

Or run directly:
    python -m encrypted_message.benchmark

Keys are read from ENCRYPTED_MESSAGE_<MODE>_KEYS (environment or .env);
random keys are generated when they are not set.
"""

from __future__ import annotations

import secrets
import string
import sys
import time
from typing import Callable

from dotenv import load_dotenv

from encrypted_message.config import load_key_config
from encrypted_message.crypto import AesGcmCipher, ChaCha20Poly1305Cipher, SecretKey
from encrypted_message.errors import ConfigError
from encrypted_message.key_config import EncryptionMode, KeyConfig
from encrypted_message.message import EncryptedMessage


def _timed(label: str, iterations: int, fn: Callable[[], object]) -> None:
    start = time.perf_counter()
    for _ in range(iterations):
        fn()
    duration = time.perf_counter() - start
    print(
        f"  {label:<44} {duration * 1000 / iterations:8.4f}ms/op | "
        f"{iterations / duration:10.2f} ops/sec"
    )


def _key_config(mode: EncryptionMode) -> KeyConfig:
    try:
        return load_key_config(mode)
    except ConfigError:
        print(f"[STARTUP] No {mode} keys configured, generating a random key")
        return KeyConfig(mode, SecretKey.generate())


def run_benchmark(iterations: int = 10_000) -> None:
    """Run the encryption/decryption benchmark."""
    print("=== Encrypted Message Benchmark ===\n")

    load_dotenv()

    alphabet = string.ascii_letters + string.digits
    payload = "".join(secrets.choice(alphabet) for _ in range(32))
    context = b"benchmark.payload"

    for cipher in (AesGcmCipher(), ChaCha20Poly1305Cipher()):
        for mode in EncryptionMode:
            message = EncryptedMessage(_key_config(mode), cipher=cipher)
            envelope = message.encrypt_value(payload, context)

            print("+" + "-" * 68 + "+")
            print(f"|  {cipher.NAME} / {mode}".ljust(69) + "|")
            print("+" + "-" * 68 + "+")
            _timed(
                "Encrypt 32-byte payload",
                iterations,
                lambda: message.encrypt_value(payload, context),
            )
            _timed(
                "Decrypt 32-byte payload",
                iterations,
                lambda: message.decrypt_value(envelope, context),
            )
            _timed(
                "Envelope JSON round trip",
                iterations,
                lambda: message.envelope_from_json(envelope.to_json()),
            )
            print()


def main() -> None:
    """Entry point for the CLI."""
    try:
        iterations = int(sys.argv[1]) if len(sys.argv) > 1 else 10_000
    except ValueError:
        print("ERROR: iterations must be an integer")
        sys.exit(1)
    if iterations < 1:
        print("ERROR: iterations must be positive")
        sys.exit(1)

    run_benchmark(iterations)


if __name__ == "__main__":
    main()
