"""
Pytest configuration and fixtures for encrypted message tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import AsyncGenerator

import asyncpg
import pytest
from dotenv import load_dotenv

from encrypted_message import (
    EncryptedMessage,
    EncryptionMode,
    KeyConfig,
    SecretKey,
)

# Fixed test keys (32 bytes each)
PRIMARY_KEY = b"uuOxfpWgRgIEo3dIrdo0hnHJHF1hntvW"
RETIRED_KEY = b"tiwQCWKCsW1d6qzZfp7HYvnRqZPYYhMt"
UNRELATED_KEY = b"Fl1cANaYYRKWjmZPMDG2a3lhMnulSBqx"


@pytest.fixture
def randomized_config() -> KeyConfig:
    """Randomized config with a single current key."""
    return KeyConfig(EncryptionMode.RANDOMIZED, SecretKey(PRIMARY_KEY))


@pytest.fixture
def deterministic_config() -> KeyConfig:
    """Deterministic config with a current key and one retired key."""
    return KeyConfig(
        EncryptionMode.DETERMINISTIC, SecretKey(PRIMARY_KEY), [SecretKey(RETIRED_KEY)]
    )


@pytest.fixture
def randomized(randomized_config: KeyConfig) -> EncryptedMessage:
    return EncryptedMessage(randomized_config)


@pytest.fixture
def deterministic(deterministic_config: KeyConfig) -> EncryptedMessage:
    return EncryptedMessage(deterministic_config)


@pytest.fixture
async def pg_pool() -> AsyncGenerator[asyncpg.Pool, None]:
    """Create a PostgreSQL connection pool for testing."""
    # Load environment from project root
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(env_path)

    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set, skipping PostgreSQL tests")

    pool = await asyncpg.create_pool(database_url)
    if pool is None:
        pytest.skip("Failed to create PostgreSQL connection pool")

    await pool.execute(
        """
        CREATE TABLE IF NOT EXISTS encrypted_message_test_users (
            id UUID PRIMARY KEY,
            ssn JSONB
        )
        """
    )
    await pool.execute("TRUNCATE TABLE encrypted_message_test_users")

    yield pool

    await pool.execute("DROP TABLE IF EXISTS encrypted_message_test_users")
    await pool.close()
