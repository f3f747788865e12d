"""
Tests for the PostgreSQL column adapter and storage.

Storage tests need DATABASE_URL (environment or .env) and are skipped otherwise.
"""

from __future__ import annotations

import json
from uuid import uuid4

import asyncpg
import pytest

from encrypted_message import (
    ConfigError,
    DecryptionFailedError,
    EncryptedColumn,
    EncryptedMessage,
    EncryptionMode,
    KeyConfig,
    MalformedEnvelopeError,
    PostgresEncryptedStorage,
    column_context,
)
from encrypted_message.postgres import decode_json_column

from .conftest import PRIMARY_KEY, RETIRED_KEY

TABLE = "encrypted_message_test_users"


class TestEncryptedColumn:
    def test_round_trip(self, randomized: EncryptedMessage) -> None:
        column = EncryptedColumn(randomized, column_context("users", "ssn"))
        stored = column.to_db({"ssn": "123-45-6789"})

        assert json.loads(stored)["scheme"] == "randomized"
        assert column.from_db(stored) == {"ssn": "123-45-6789"}
        assert column.from_db(json.loads(stored)) == {"ssn": "123-45-6789"}

    def test_envelopes_are_bound_to_their_column(self, randomized: EncryptedMessage) -> None:
        ssn = EncryptedColumn(randomized, column_context("users", "ssn"))
        email = EncryptedColumn(randomized, column_context("users", "email"))

        with pytest.raises(DecryptionFailedError):
            email.from_db(ssn.to_db("123-45-6789"))

    def test_search_value_requires_deterministic(
        self, randomized: EncryptedMessage, deterministic: EncryptedMessage
    ) -> None:
        with pytest.raises(ConfigError):
            EncryptedColumn(randomized, "users.ssn").search_value("x")

        column = EncryptedColumn(deterministic, "users.ssn")
        assert column.search_value("x") == column.to_db("x")

    def test_malformed_column_value(self, randomized: EncryptedMessage) -> None:
        column = EncryptedColumn(randomized, "users.ssn")
        with pytest.raises(MalformedEnvelopeError):
            column.from_db('{"p": "legacy"}')

    def test_decode_json_column(self) -> None:
        assert decode_json_column('{"a": 1}') == {"a": 1}
        with pytest.raises(MalformedEnvelopeError):
            decode_json_column("{")


@pytest.mark.parametrize("table", ["users; DROP TABLE users", "a.b.c", "1users", ""])
def test_unsafe_identifiers_rejected(randomized: EncryptedMessage, table: str) -> None:
    column = EncryptedColumn(randomized, "users.ssn")
    with pytest.raises(ConfigError):
        PostgresEncryptedStorage(None, table, "ssn", column)  # type: ignore[arg-type]


def test_schema_qualified_table_accepted(randomized: EncryptedMessage) -> None:
    column = EncryptedColumn(randomized, "users.ssn")
    PostgresEncryptedStorage(None, "public.users", "ssn", column)  # type: ignore[arg-type]


def _deterministic_column(*keys: bytes) -> EncryptedColumn:
    config = KeyConfig.from_keys(EncryptionMode.DETERMINISTIC, list(keys))
    return EncryptedColumn(EncryptedMessage(config), column_context(TABLE, "ssn"))


async def test_store_load_and_find(pg_pool: asyncpg.Pool) -> None:
    storage = PostgresEncryptedStorage(pg_pool, TABLE, "ssn", _deterministic_column(PRIMARY_KEY))
    alice, bob = uuid4(), uuid4()

    await storage.store(alice, "123-45-6789")
    await storage.store(bob, "987-65-4321")

    assert await storage.load(alice) == "123-45-6789"
    assert await storage.load(uuid4()) is None
    assert await storage.find_ids("987-65-4321") == [bob]
    assert await storage.find_ids("000-00-0000") == []

    # Upsert replaces the value
    await storage.store(alice, "111-11-1111")
    assert await storage.load(alice) == "111-11-1111"


async def test_rotate_all(pg_pool: asyncpg.Pool) -> None:
    old_storage = PostgresEncryptedStorage(
        pg_pool, TABLE, "ssn", _deterministic_column(RETIRED_KEY)
    )
    record_ids = [uuid4() for _ in range(5)]
    for i, record_id in enumerate(record_ids):
        await old_storage.store(record_id, f"value-{i}")

    storage = PostgresEncryptedStorage(
        pg_pool, TABLE, "ssn", _deterministic_column(PRIMARY_KEY, RETIRED_KEY)
    )
    # Old rows are readable but not searchable with the new key
    assert await storage.load(record_ids[0]) == "value-0"
    assert await storage.find_ids("value-0") == []

    assert await storage.rotate_all(batch_size=2) == 5
    assert await storage.rotate_all() == 0
    assert await storage.find_ids("value-0") == [record_ids[0]]

    # Rows are no longer readable with only the retired key
    with pytest.raises(DecryptionFailedError):
        await old_storage.load(record_ids[0])
