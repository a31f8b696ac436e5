"""
Key sourcing for field encryption.

This module provides:
- KeyProvider: Abstract source of the AES-256 key for one session/process
- DerivedKeyProvider: Per-user key derived from (user_id, salt, PIN)
- MasterKeyProvider: Server-wide key derived from a secret held in the environment
- derive_user_key / derive_master_key: the underlying PBKDF2 derivations

Both variants run PBKDF2-HMAC-SHA256 with 100,000 iterations and produce a
32-byte key. Derivation is deterministic: identical inputs always yield the
same key, which is what makes previously written envelopes readable.

Providers never mutate their key once derived. A PIN change or logout must
build a new provider instead of editing an existing one.
"""

from __future__ import annotations

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from typing import Mapping, Optional

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from .crypto import AES_256_KEY_SIZE, SecureKey
from .errors import ConfigurationError, KeyUnavailableError

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS: int = 100_000
DEFAULT_MASTER_KEY_SALT: str = "memoza-salt"
MASTER_SECRET_ENV: str = "ENCRYPTION_KEY"


def _pbkdf2(material: str, salt: str) -> SecureKey:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=AES_256_KEY_SIZE,
        salt=salt.encode("utf-8"),
        iterations=PBKDF2_ITERATIONS,
    )
    return SecureKey(kdf.derive(material.encode("utf-8")))


def derive_user_key(user_id: str, salt: str, pin: str) -> SecureKey:
    """
    Derive a user's key from their id, stored salt and PIN.

    The key material is ``user_id + salt``; the PIN is used as the PBKDF2
    salt parameter.

    Raises:
        KeyUnavailableError: If any input is missing
    """
    if not user_id:
        raise KeyUnavailableError("User id is required to derive a key")
    if not salt:
        raise KeyUnavailableError(f"No salt stored for user {user_id}")
    if not pin:
        raise KeyUnavailableError("PIN is required to derive a key")
    return _pbkdf2(user_id + salt, pin)


def derive_master_key(secret: Optional[str], salt: str = DEFAULT_MASTER_KEY_SALT) -> SecureKey:
    """
    Derive the server master key from its secret.

    Raises:
        ConfigurationError: If the secret is missing
    """
    if not secret:
        raise ConfigurationError(f"{MASTER_SECRET_ENV} is not configured")
    return _pbkdf2(secret, salt)


class KeyProvider(ABC):
    """
    Source of the symmetric key used for one session or process.

    The key is derived at most once per provider and then shared read-only
    by every encrypt/decrypt call.
    """

    def __init__(self) -> None:
        self._key: Optional[SecureKey] = None
        self._lock = asyncio.Lock()

    @property
    @abstractmethod
    def source(self) -> str:
        """Short label for logs ("derived" or "master")."""
        ...

    @abstractmethod
    def _derive(self) -> SecureKey:
        """Run the (blocking) derivation."""
        ...

    @abstractmethod
    def _check_inputs(self) -> None:
        """Raise before any work if required inputs are missing."""
        ...

    async def get_key(self) -> SecureKey:
        """
        Return the provider's key, deriving it on first use.

        PBKDF2 runs in a worker thread so the event loop keeps serving
        other requests. Concurrent first callers share one derivation.

        Raises:
            KeyUnavailableError: Derived mode with missing inputs
            ConfigurationError: Master mode without a secret
        """
        if self._key is not None:
            return self._key

        self._check_inputs()

        async with self._lock:
            if self._key is None:
                self._key = await asyncio.to_thread(self._derive)
                logger.debug("Derived %s key", self.source)
        return self._key

    @property
    def is_ready(self) -> bool:
        """Whether the key has already been derived."""
        return self._key is not None


class DerivedKeyProvider(KeyProvider):
    """Client-side key derived from a user's id, salt and PIN."""

    def __init__(self, user_id: Optional[str], salt: Optional[str], pin: Optional[str]) -> None:
        super().__init__()
        self._user_id = user_id
        self._salt = salt
        self._pin = pin

    @property
    def source(self) -> str:
        return "derived"

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    def _check_inputs(self) -> None:
        if not self._user_id or not self._salt or not self._pin:
            missing = [
                name
                for name, value in (("user_id", self._user_id), ("salt", self._salt), ("pin", self._pin))
                if not value
            ]
            logger.warning("Key unavailable, missing inputs: %s", ", ".join(missing))
            raise KeyUnavailableError(f"Cannot derive key, missing: {', '.join(missing)}")

    def _derive(self) -> SecureKey:
        return derive_user_key(self._user_id or "", self._salt or "", self._pin or "")

    def __repr__(self) -> str:
        return f"DerivedKeyProvider(user_id={self._user_id!r})"


class MasterKeyProvider(KeyProvider):
    """Server-side key derived from a secret string and a fixed salt."""

    def __init__(self, secret: Optional[str], salt: str = DEFAULT_MASTER_KEY_SALT) -> None:
        super().__init__()
        self._secret = secret
        self._salt = salt

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        salt: str = DEFAULT_MASTER_KEY_SALT,
    ) -> MasterKeyProvider:
        """Build a provider from ``ENCRYPTION_KEY`` in the process environment."""
        env = os.environ if environ is None else environ
        return cls(env.get(MASTER_SECRET_ENV), salt=salt)

    @property
    def source(self) -> str:
        return "master"

    @property
    def is_configured(self) -> bool:
        return bool(self._secret)

    def _check_inputs(self) -> None:
        if not self._secret:
            logger.error("%s environment variable is not set", MASTER_SECRET_ENV)
            raise ConfigurationError(f"{MASTER_SECRET_ENV} is not configured")

    def _derive(self) -> SecureKey:
        return derive_master_key(self._secret, self._salt)

    def __repr__(self) -> str:
        return "MasterKeyProvider([REDACTED])"
