"""
Pytest configuration and fixtures for memo encryption tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import AsyncGenerator

import asyncpg
import pytest
from dotenv import load_dotenv

from memo_encryption import (
    DerivedKeyProvider,
    FieldEncryptionService,
    InMemoryUserKeyStorage,
    PostgresUserKeyStorage,
    SecureKey,
    derive_user_key,
)

USER_ID = "u1"
SALT = "abc-salt"
PIN = "123456"


@pytest.fixture(scope="session")
def user_key() -> SecureKey:
    """Key derived once per test session (PBKDF2 is deliberately slow)."""
    return derive_user_key(USER_ID, SALT, PIN)


@pytest.fixture(scope="session")
def other_key() -> SecureKey:
    """A second, unrelated key."""
    return SecureKey.generate()


@pytest.fixture
def derived_provider() -> DerivedKeyProvider:
    return DerivedKeyProvider(USER_ID, SALT, PIN)


@pytest.fixture
def service(derived_provider: DerivedKeyProvider) -> FieldEncryptionService:
    return FieldEncryptionService(derived_provider)


@pytest.fixture
def memory_storage() -> InMemoryUserKeyStorage:
    """Create an in-memory storage instance for testing."""
    return InMemoryUserKeyStorage()


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

    yield pool

    await pool.close()


@pytest.fixture
async def postgres_storage(pg_pool: asyncpg.Pool) -> AsyncGenerator[PostgresUserKeyStorage, None]:
    """Create a PostgreSQL storage instance with a clean table."""
    storage = PostgresUserKeyStorage(pg_pool)
    await storage.ensure_schema()
    await pg_pool.execute("TRUNCATE TABLE user_key_records")
    yield storage
