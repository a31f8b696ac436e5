"""
PIN-gated key session for one signed-in user.

A session owns at most one DerivedKeyProvider. Unlocking builds a new
provider; locking (logout, PIN clear) drops it. The provider is never
mutated in place.
"""

from __future__ import annotations

import logging
from typing import Optional

from .errors import InvalidPinError, KeyUnavailableError
from .key_provider import DerivedKeyProvider
from .pin import generate_user_salt, hash_pin, validate_pin, verify_pin
from .service import FieldEncryptionService
from .storage import UserKeyRecord, UserKeyStorage

logger = logging.getLogger(__name__)


class KeySession:
    """Holds the current user's derived key provider while unlocked."""

    def __init__(self, storage: UserKeyStorage) -> None:
        self._storage = storage
        self._provider: Optional[DerivedKeyProvider] = None

    @property
    def is_unlocked(self) -> bool:
        return self._provider is not None

    @property
    def provider(self) -> DerivedKeyProvider:
        """
        The active provider.

        Raises:
            KeyUnavailableError: If the session is locked
        """
        if self._provider is None:
            raise KeyUnavailableError("Session is locked; enter the PIN first")
        return self._provider

    def service(self) -> FieldEncryptionService:
        """A FieldEncryptionService bound to the active provider."""
        return FieldEncryptionService(self.provider)

    async def set_pin(self, user_id: str, pin: str) -> DerivedKeyProvider:
        """
        Set (or reset) a user's PIN and unlock the session.

        An existing salt is reused so previously written notes stay readable
        with the same PIN; a salt is generated only for first-time users.

        Raises:
            InvalidPinError: If the PIN format is wrong
        """
        validate_pin(pin)
        record = await self._storage.get_user(user_id)
        if record is None:
            record = UserKeyRecord(user_id=user_id, salt=generate_user_salt())
            logger.info("Generated salt for new user key record")
        record = record.with_pin_hash(hash_pin(pin))
        await self._storage.save_user(record)

        return await self._open(record, pin)

    async def unlock(self, user_id: str, pin: str) -> DerivedKeyProvider:
        """
        Verify the PIN and unlock the session.

        Raises:
            KeyUnavailableError: If the user has no stored salt
            InvalidPinError: If the PIN does not match
        """
        record = await self._storage.get_user(user_id)
        if record is None or not record.salt:
            raise KeyUnavailableError(f"No salt stored for user {user_id}")
        if not record.pin_set or not record.pin_hash or not verify_pin(pin, record.pin_hash):
            logger.info("PIN verification failed")
            raise InvalidPinError("PIN does not match")

        return await self._open(record, pin)

    def lock(self) -> None:
        """Drop the provider (and with it the derived key)."""
        self._provider = None

    async def _open(self, record: UserKeyRecord, pin: str) -> DerivedKeyProvider:
        provider = DerivedKeyProvider(record.user_id, record.salt, pin)
        await provider.get_key()
        self._provider = provider
        return provider
