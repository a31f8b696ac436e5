"""
Storage abstractions for per-user key records.

This module provides:
- UserKeyRecord: a user's salt and PIN hash
- UserKeyStorage: Abstract protocol for storage backends
- InMemoryUserKeyStorage: asyncio-safe in-memory implementation for testing
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UserKeyRecord:
    """
    Key-related fields stored alongside a user.

    The salt is created once when the PIN is first set and never rotated.
    """

    user_id: str
    salt: str
    pin_hash: Optional[str] = None
    pin_set: bool = False
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def with_pin_hash(self, pin_hash: str) -> UserKeyRecord:
        """Copy with a new PIN hash; the salt is kept."""
        return replace(self, pin_hash=pin_hash, pin_set=True, updated_at=_utcnow())


class UserKeyStorage(ABC):
    """
    Abstract storage interface for user key records.

    All methods are async to support both in-memory and database backends.
    """

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[UserKeyRecord]:
        """Get a user's key record, or None."""
        ...

    @abstractmethod
    async def save_user(self, record: UserKeyRecord) -> None:
        """Insert or update a user's key record."""
        ...

    @abstractmethod
    async def delete_user(self, user_id: str) -> bool:
        """Delete a user's key record. Returns True if one existed."""
        ...


class InMemoryUserKeyStorage(UserKeyStorage):
    """
    In-memory storage implementation for testing.

    Uses asyncio.Lock for safe concurrent access.
    """

    def __init__(self) -> None:
        self._users: Dict[str, UserKeyRecord] = {}
        self._lock = asyncio.Lock()

    async def get_user(self, user_id: str) -> Optional[UserKeyRecord]:
        async with self._lock:
            return self._users.get(user_id)

    async def save_user(self, record: UserKeyRecord) -> None:
        async with self._lock:
            self._users[record.user_id] = record

    async def delete_user(self, user_id: str) -> bool:
        async with self._lock:
            return self._users.pop(user_id, None) is not None
