"""
PostgreSQL integration for encrypted columns.

This module provides:
- EncryptedColumn: maps application values to envelope JSON for a JSON/JSONB
  column and back
- PostgresEncryptedStorage: asyncpg-backed store for one encrypted column,
  including equality search (deterministic mode) and re-encryption of rows
  still encrypted under retired keys

Expected table shape:
    CREATE TABLE users (id UUID PRIMARY KEY, ssn JSONB);
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, List, Mapping, Optional

import asyncpg

from .context import ContextLike, as_context_bytes
from .envelope import Envelope
from .errors import ConfigError, MalformedEnvelopeError, StorageError
from .key_config import EncryptionMode
from .message import EncryptedMessage

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class EncryptedColumn:
    """
    Column adapter binding an engine to a fixed context.

    The context is usually column_context(table, column), so envelopes
    cannot be moved between columns.
    """

    def __init__(self, message: EncryptedMessage, context: ContextLike) -> None:
        self._message = message
        self._context = as_context_bytes(context)

    @property
    def message(self) -> EncryptedMessage:
        return self._message

    @property
    def context(self) -> bytes:
        return self._context

    def to_db(self, value: Any) -> str:
        """Encrypt a value and return the envelope JSON to store."""
        return self._message.encrypt_value(value, self._context).to_json()

    def from_db(self, raw: str | bytes | Mapping[str, Any]) -> Any:
        """
        Decrypt a stored envelope (JSON text or an already decoded object).

        Raises:
            MalformedEnvelopeError: If the stored value is not an envelope
            DecryptionFailedError: If no configured key can decrypt it
        """
        return self._message.decrypt_value(self.envelope_from_db(raw), self._context)

    def envelope_from_db(self, raw: str | bytes | Mapping[str, Any]) -> Envelope:
        if isinstance(raw, Mapping):
            cipher = self._message.cipher
            return Envelope.from_dict(
                raw, nonce_size=cipher.NONCE_SIZE, tag_size=cipher.TAG_SIZE
            )
        return self._message.envelope_from_json(raw)

    def search_value(self, value: Any) -> str:
        """
        Envelope JSON to compare against for equality search.

        Raises:
            ConfigError: If the engine is not in deterministic mode
        """
        if self._message.mode is not EncryptionMode.DETERMINISTIC:
            raise ConfigError("Equality search requires deterministic encryption")
        return self.to_db(value)


class PostgresEncryptedStorage:
    """
    Store and query one encrypted JSONB column through an asyncpg pool.
    """

    def __init__(
        self,
        pool: asyncpg.Pool,
        table: str,
        column_name: str,
        column: EncryptedColumn,
        id_column: str = "id",
    ) -> None:
        """
        Args:
            pool: asyncpg connection pool
            table: Table name (optionally schema-qualified)
            column_name: JSON/JSONB column holding envelopes
            column: Adapter used to encrypt/decrypt values
            id_column: Primary key column

        Raises:
            ConfigError: If a table or column name is not a plain identifier
        """
        self._pool = pool
        self._table = _quote_identifier(table, allow_schema=True)
        self._column = _quote_identifier(column_name)
        self._id_column = _quote_identifier(id_column)
        self._adapter = column

    @property
    def pool(self) -> asyncpg.Pool:
        """Get the connection pool."""
        return self._pool

    async def store(self, record_id: Any, value: Any) -> None:
        """Encrypt and upsert a value."""
        query = f"""
            INSERT INTO {self._table} ({self._id_column}, {self._column})
            VALUES ($1, $2::TEXT::jsonb)
            ON CONFLICT ({self._id_column}) DO UPDATE SET {self._column} = EXCLUDED.{self._column}
        """
        encrypted = self._adapter.to_db(value)
        try:
            await self._pool.execute(query, record_id, encrypted)
        except asyncpg.PostgresError as e:
            raise StorageError(f"Failed to store encrypted value: {e}") from e

    async def load(self, record_id: Any) -> Optional[Any]:
        """
        Load and decrypt a value.

        Returns:
            Decrypted value, or None if the row or the column value is missing
        """
        query = f"""
            SELECT {self._column}::TEXT AS value
            FROM {self._table}
            WHERE {self._id_column} = $1
        """
        try:
            row = await self._pool.fetchrow(query, record_id)
        except asyncpg.PostgresError as e:
            raise StorageError(f"Failed to load encrypted value: {e}") from e

        if row is None or row["value"] is None:
            return None
        return self._adapter.from_db(row["value"])

    async def find_ids(self, value: Any) -> List[Any]:
        """
        Return ids of rows whose column holds value (deterministic mode only).
        """
        query = f"""
            SELECT {self._id_column} AS id
            FROM {self._table}
            WHERE {self._column} = $1::TEXT::jsonb
        """
        search = self._adapter.search_value(value)
        try:
            rows = await self._pool.fetch(query, search)
        except asyncpg.PostgresError as e:
            raise StorageError(f"Failed to search encrypted column: {e}") from e
        return [row["id"] for row in rows]

    async def rotate_all(self, batch_size: int = 50) -> int:
        """
        Re-encrypt every row whose envelope was produced with a retired key.

        Rows are streamed with a server-side cursor inside one transaction.

        Returns:
            Number of rows re-encrypted
        """
        select_query = f"""
            SELECT {self._id_column} AS id, {self._column}::TEXT AS value
            FROM {self._table}
            WHERE {self._column} IS NOT NULL
        """
        update_query = f"""
            UPDATE {self._table} SET {self._column} = $2::TEXT::jsonb
            WHERE {self._id_column} = $1
        """
        message = self._adapter.message
        rotated = 0
        try:
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    pending = []
                    async for row in conn.cursor(select_query, prefetch=batch_size):
                        envelope = self._adapter.envelope_from_db(row["value"])
                        if not message.needs_rotation(envelope, self._adapter.context):
                            continue
                        fresh = message.reencrypt(envelope, self._adapter.context)
                        pending.append((row["id"], fresh.to_json()))
                        if len(pending) >= batch_size:
                            await conn.executemany(update_query, pending)
                            rotated += len(pending)
                            pending = []
                    if pending:
                        await conn.executemany(update_query, pending)
                        rotated += len(pending)
        except asyncpg.PostgresError as e:
            raise StorageError(f"Failed to rotate encrypted column: {e}") from e

        logger.info("Re-encrypted %d rows in %s.%s", rotated, self._table, self._column)
        return rotated


def _quote_identifier(name: str, allow_schema: bool = False) -> str:
    parts = name.split(".") if allow_schema else [name]
    if len(parts) > 2 or not all(_IDENTIFIER.match(p) for p in parts):
        raise ConfigError(f"Invalid SQL identifier: {name!r}")
    return ".".join(f'"{p}"' for p in parts)


def decode_json_column(value: str | bytes) -> Any:
    """asyncpg decoder for json/jsonb columns, see set_json_codecs()."""
    try:
        return json.loads(value)
    except ValueError as e:
        raise MalformedEnvelopeError(f"Invalid JSON column value: {e}") from e


async def set_json_codecs(conn: asyncpg.Connection) -> None:
    """
    Make asyncpg return json/jsonb columns as Python objects.

    Pass as `init=set_json_codecs` to asyncpg.create_pool(); EncryptedColumn
    accepts both decoded objects and raw JSON text.
    """
    for type_name in ("json", "jsonb"):
        await conn.set_type_codec(
            type_name,
            encoder=json.dumps,
            decoder=decode_json_column,
            schema="pg_catalog",
        )
