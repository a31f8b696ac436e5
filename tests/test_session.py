"""
Tests for PIN helpers, user key records and KeySession.
"""

from __future__ import annotations

import pytest

from memo_encryption import (
    InMemoryUserKeyStorage,
    InvalidPinError,
    KeySession,
    KeyUnavailableError,
    UserKeyRecord,
    derive_user_key,
)
from memo_encryption.pin import generate_user_salt, hash_pin, validate_pin, verify_pin


class TestPin:
    @pytest.mark.parametrize("pin", ["12345", "1234567", "12a456", "", "１２３４５６"])
    def test_invalid_format(self, pin: str):
        with pytest.raises(InvalidPinError):
            validate_pin(pin)

    def test_valid_format(self):
        assert validate_pin("012345") == "012345"

    def test_hash_and_verify(self):
        pin_hash = hash_pin("123456")
        assert len(pin_hash) == 64
        assert verify_pin("123456", pin_hash)
        assert not verify_pin("654321", pin_hash)

    def test_salts_are_unique(self):
        assert generate_user_salt() != generate_user_salt()


class TestInMemoryStorage:
    async def test_save_get_delete(self, memory_storage: InMemoryUserKeyStorage):
        record = UserKeyRecord(user_id="u1", salt="abc-salt")
        await memory_storage.save_user(record)

        assert await memory_storage.get_user("u1") == record
        assert await memory_storage.delete_user("u1") is True
        assert await memory_storage.get_user("u1") is None
        assert await memory_storage.delete_user("u1") is False

    def test_with_pin_hash_keeps_salt(self):
        record = UserKeyRecord(user_id="u1", salt="abc-salt")
        updated = record.with_pin_hash("h")
        assert updated.salt == "abc-salt"
        assert updated.pin_set and updated.pin_hash == "h"
        assert not record.pin_set


class TestKeySession:
    async def test_locked_by_default(self, memory_storage: InMemoryUserKeyStorage):
        session = KeySession(memory_storage)
        assert not session.is_unlocked
        with pytest.raises(KeyUnavailableError):
            session.provider

    async def test_set_pin_creates_salt_and_unlocks(self, memory_storage: InMemoryUserKeyStorage):
        session = KeySession(memory_storage)
        provider = await session.set_pin("u1", "123456")

        record = await memory_storage.get_user("u1")
        assert record is not None
        assert record.salt
        assert record.pin_set
        assert verify_pin("123456", record.pin_hash)
        assert session.provider is provider
        key = await provider.get_key()
        assert key.as_bytes() == derive_user_key("u1", record.salt, "123456").as_bytes()

    async def test_set_pin_reuses_existing_salt(self, memory_storage: InMemoryUserKeyStorage):
        await memory_storage.save_user(UserKeyRecord(user_id="u1", salt="abc-salt"))
        session = KeySession(memory_storage)

        await session.set_pin("u1", "123456")

        assert (await memory_storage.get_user("u1")).salt == "abc-salt"

    async def test_set_pin_rejects_bad_format(self, memory_storage: InMemoryUserKeyStorage):
        with pytest.raises(InvalidPinError):
            await KeySession(memory_storage).set_pin("u1", "12")
        assert await memory_storage.get_user("u1") is None

    async def test_unlock_reads_notes_written_earlier(self, memory_storage: InMemoryUserKeyStorage):
        writer = KeySession(memory_storage)
        await writer.set_pin("u1", "123456")
        stored = await writer.service().encrypt("회의 노트")
        writer.lock()

        reader = KeySession(memory_storage)
        await reader.unlock("u1", "123456")
        assert await reader.service().decrypt(stored) == "회의 노트"

    async def test_unlock_without_salt(self, memory_storage: InMemoryUserKeyStorage):
        with pytest.raises(KeyUnavailableError):
            await KeySession(memory_storage).unlock("nobody", "123456")

    async def test_unlock_with_wrong_pin(self, memory_storage: InMemoryUserKeyStorage):
        session = KeySession(memory_storage)
        await session.set_pin("u1", "123456")
        session.lock()

        with pytest.raises(InvalidPinError):
            await session.unlock("u1", "000000")
        assert not session.is_unlocked

    async def test_lock_drops_provider(self, memory_storage: InMemoryUserKeyStorage):
        session = KeySession(memory_storage)
        await session.set_pin("u1", "123456")
        session.lock()

        assert not session.is_unlocked
        with pytest.raises(KeyUnavailableError):
            session.service()

    async def test_unlock_builds_new_provider(self, memory_storage: InMemoryUserKeyStorage):
        session = KeySession(memory_storage)
        first = await session.set_pin("u1", "123456")
        second = await session.unlock("u1", "123456")
        assert first is not second
