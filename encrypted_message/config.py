"""
Loading key configurations from the environment.

Variables (MODE is RANDOMIZED or DETERMINISTIC):
- ENCRYPTED_MESSAGE_<MODE>_KEYS: comma separated keys, current key first
- ENCRYPTED_MESSAGE_KEY_ENCODING: "base64" (default) or "hex"
- ENCRYPTED_MESSAGE_<MODE>_KEY_DERIVATION_SALT: when set, keys are raw
  secrets and are run through PBKDF2 instead of being decoded
- ENCRYPTED_MESSAGE_KEY_DERIVATION_ITERATIONS: PBKDF2 iterations

It's recommended to use different keys for each mode.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Mapping, Optional

from dotenv import load_dotenv

from .crypto import SecretKey
from .errors import ConfigError
from .key_config import EncryptionMode, KeyConfig
from .key_derivation import (
    DEFAULT_KEY_DERIVATION_ITERATIONS,
    decode_base64_keys,
    decode_hex_keys,
    derive_key_from,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "ENCRYPTED_MESSAGE"


def load_key_config(
    mode: EncryptionMode | str,
    environ: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[str | Path] = None,
    prefix: str = ENV_PREFIX,
) -> KeyConfig:
    """
    Build a KeyConfig for one mode from environment variables.

    Args:
        mode: Encryption mode (or its name, e.g. "deterministic") to load keys for
        environ: Mapping to read from (default: os.environ after load_dotenv)
        dotenv_path: Optional .env file loaded into os.environ first
        prefix: Variable name prefix

    Returns:
        KeyConfig with the first listed key as current key

    Raises:
        ConfigError: If keys are missing or invalid
    """
    if environ is None:
        load_dotenv(dotenv_path)
        environ = os.environ

    if isinstance(mode, str):
        mode = EncryptionMode.from_str(mode)
    mode_name = mode.name
    keys_var = f"{prefix}_{mode_name}_KEYS"
    raw_keys = [k.strip() for k in environ.get(keys_var, "").split(",") if k.strip()]
    if not raw_keys:
        raise ConfigError(f"{keys_var} must be set in environment or .env file")

    salt = environ.get(f"{prefix}_{mode_name}_KEY_DERIVATION_SALT")
    if salt:
        keys = _derive_keys(raw_keys, salt.encode("utf-8"), environ, prefix)
    else:
        keys = _decode_keys(raw_keys, environ.get(f"{prefix}_KEY_ENCODING", "base64"))

    config = KeyConfig.from_keys(mode, keys)
    logger.info(
        "Loaded %s key config: current=%s retired=%d",
        mode,
        config.current_key_id,
        len(config.retired_keys),
    )
    return config


def _decode_keys(raw_keys: List[str], encoding: str) -> List[SecretKey]:
    encoding = encoding.strip().lower()
    if encoding == "base64":
        return decode_base64_keys(raw_keys)
    if encoding == "hex":
        return decode_hex_keys(raw_keys)
    raise ConfigError(f"Invalid key encoding: {encoding!r} (expected base64 or hex)")


def _derive_keys(
    raw_keys: List[str], salt: bytes, environ: Mapping[str, str], prefix: str
) -> List[SecretKey]:
    iterations_var = f"{prefix}_KEY_DERIVATION_ITERATIONS"
    try:
        iterations = int(environ.get(iterations_var, DEFAULT_KEY_DERIVATION_ITERATIONS))
    except ValueError:
        raise ConfigError(f"{iterations_var} must be an integer") from None

    return [derive_key_from(k.encode("utf-8"), salt, iterations) for k in raw_keys]
