"""
PostgreSQL storage backend for user key records.

Only the salt and the PIN hash are stored; derived keys never leave memory.

Table:
    user_key_records(user_id TEXT PRIMARY KEY, salt TEXT NOT NULL,
                     pin_hash TEXT, pin_set BOOLEAN, created_at, updated_at)
"""

from __future__ import annotations

from typing import Optional

import asyncpg

from .errors import StorageError
from .storage import UserKeyRecord, UserKeyStorage

SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS user_key_records (
        user_id     TEXT PRIMARY KEY,
        salt        TEXT NOT NULL,
        pin_hash    TEXT,
        pin_set     BOOLEAN NOT NULL DEFAULT FALSE,
        created_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at  TIMESTAMPTZ NOT NULL DEFAULT now()
    )
"""


class PostgresUserKeyStorage(UserKeyStorage):
    """PostgreSQL-backed storage for user salts and PIN hashes."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        """
        Initialize PostgreSQL storage.

        Args:
            pool: asyncpg connection pool
        """
        self._pool = pool

    @property
    def pool(self) -> asyncpg.Pool:
        """Get the connection pool."""
        return self._pool

    async def ensure_schema(self) -> None:
        """Create the user_key_records table if it does not exist."""
        try:
            await self._pool.execute(SCHEMA_SQL)
        except Exception as e:
            raise StorageError(f"Failed to create schema: {e}") from e

    async def get_user(self, user_id: str) -> Optional[UserKeyRecord]:
        query = """
            SELECT user_id, salt, pin_hash, pin_set, created_at, updated_at
            FROM user_key_records
            WHERE user_id = $1
        """
        try:
            row = await self._pool.fetchrow(query, user_id)
        except Exception as e:
            raise StorageError(f"Failed to get user key record: {e}") from e
        if row is None:
            return None
        return self._row_to_record(row)

    async def save_user(self, record: UserKeyRecord) -> None:
        # The salt is immutable once written; conflicts only update the PIN fields.
        query = """
            INSERT INTO user_key_records (user_id, salt, pin_hash, pin_set, created_at, updated_at)
            VALUES ($1, $2, $3, $4, $5, $6)
            ON CONFLICT (user_id) DO UPDATE
            SET pin_hash = EXCLUDED.pin_hash,
                pin_set = EXCLUDED.pin_set,
                updated_at = EXCLUDED.updated_at
        """
        try:
            await self._pool.execute(
                query,
                record.user_id,
                record.salt,
                record.pin_hash,
                record.pin_set,
                record.created_at,
                record.updated_at,
            )
        except Exception as e:
            raise StorageError(f"Failed to save user key record: {e}") from e

    async def delete_user(self, user_id: str) -> bool:
        query = "DELETE FROM user_key_records WHERE user_id = $1"
        try:
            status = await self._pool.execute(query, user_id)
        except Exception as e:
            raise StorageError(f"Failed to delete user key record: {e}") from e
        # asyncpg returns the command tag, e.g. "DELETE 1"
        return status.split()[-1] != "0"

    @staticmethod
    def _row_to_record(row: asyncpg.Record) -> UserKeyRecord:
        """Convert database row to UserKeyRecord."""
        return UserKeyRecord(
            user_id=row["user_id"],
            salt=row["salt"],
            pin_hash=row["pin_hash"],
            pin_set=row["pin_set"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
