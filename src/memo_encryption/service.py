"""
Field encryption service: the main API used by memo/tag persistence code.

This module provides:
- FieldEncryptionService: single-value, batch and record-level operations
- build_service: server-side service from Settings (master key)
- MEMO_FIELDS / TAG_FIELDS: the record fields that are stored encrypted

Error policy:
- Single reads (detail/edit views) raise DecryptionError to the caller
- Batch and list reads substitute the fallback sentinel per failing field
- Writes propagate every error; plaintext is never stored as a substitute
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .batch import BatchCoordinator
from .cipher import FieldCipher
from .config import Settings
from .envelope import EnvelopeFormat, StoredValue
from .fallback import FallbackPolicy, FieldState, is_blank
from .key_provider import KeyProvider, MasterKeyProvider

logger = logging.getLogger(__name__)

MEMO_FIELDS: Tuple[str, ...] = ("title", "content")
TAG_FIELDS: Tuple[str, ...] = ("name",)


class FieldEncryptionService:
    """
    Encrypts and decrypts note fields with one KeyProvider.

    The provider is fixed for the service's lifetime; a new PIN or a new
    session means a new service.
    """

    def __init__(
        self,
        provider: KeyProvider,
        envelope_format: EnvelopeFormat = EnvelopeFormat.COMBINED,
        policy: Optional[FallbackPolicy] = None,
        item_timeout: Optional[float] = None,
    ) -> None:
        """
        Args:
            provider: Source of the key
            envelope_format: Encoding used for newly written envelopes
            policy: FallbackPolicy (default sentinel if omitted)
            item_timeout: Optional per-item batch timeout in seconds
        """
        self._provider = provider
        self._policy = policy or FallbackPolicy()
        self._cipher = FieldCipher(envelope_format)
        self._coordinator = BatchCoordinator(self._cipher, self._policy, item_timeout)

    @classmethod
    async def new(
        cls,
        provider: KeyProvider,
        settings: Optional[Settings] = None,
        warm: bool = False,
    ) -> FieldEncryptionService:
        """
        Initialize service (async factory method).

        Args:
            provider: Source of the key
            settings: Optional settings for format, sentinel and timeout
            warm: Derive the key now instead of on first use

        Returns:
            FieldEncryptionService instance
        """
        settings = settings or Settings()
        service = cls(
            provider,
            envelope_format=settings.envelope_format,
            policy=FallbackPolicy(settings.decryption_sentinel),
            item_timeout=settings.batch_item_timeout,
        )
        if warm:
            await provider.get_key()
        return service

    @property
    def provider(self) -> KeyProvider:
        return self._provider

    @property
    def policy(self) -> FallbackPolicy:
        return self._policy

    def classify(self, value: Optional[StoredValue]) -> FieldState:
        """Classify a stored value without decrypting it."""
        return self._policy.classify(value)

    # =========================================================================
    # Single values
    # =========================================================================

    async def encrypt(self, plaintext: Optional[str]) -> StoredValue:
        """
        Encrypt one value.

        Blank values and values that already look like envelopes are
        returned unchanged without touching the key.

        Raises:
            KeyUnavailableError / ConfigurationError: If no key can be obtained
            EncryptionError: If encryption fails
        """
        if not self._policy.should_encrypt(plaintext):
            return plaintext if plaintext is not None else ""
        key = await self._provider.get_key()
        return await self._cipher.encrypt_field(plaintext, key)

    async def decrypt(self, stored: Optional[StoredValue]) -> str:
        """
        Decrypt one value for a direct (detail/edit) read.

        Raises:
            KeyUnavailableError / ConfigurationError: If no key can be obtained
            DecryptionError: If the value cannot be decrypted
        """
        if is_blank(stored):
            return stored if isinstance(stored, str) else ""
        key = await self._provider.get_key()
        return await self._cipher.decrypt_field(stored, key)

    # =========================================================================
    # Batches
    # =========================================================================

    async def encrypt_batch(self, plaintexts: Sequence[Optional[str]]) -> List[StoredValue]:
        """
        Encrypt many values, preserving order.

        Raises:
            EncryptionError: If any item fails
        """
        if not any(self._policy.should_encrypt(v) for v in plaintexts):
            return [v if v is not None else "" for v in plaintexts]
        key = await self._provider.get_key()
        return await self._coordinator.encrypt_batch(plaintexts, key)

    async def decrypt_batch(self, values: Sequence[Optional[StoredValue]]) -> List[str]:
        """
        Decrypt many values, preserving order; failing items become the sentinel.

        Raises:
            KeyUnavailableError / ConfigurationError: If no key can be obtained
        """
        if all(is_blank(v) for v in values):
            return [v if isinstance(v, str) else "" for v in values]
        key = await self._provider.get_key()
        return await self._coordinator.decrypt_batch(values, key)

    # =========================================================================
    # Records
    # =========================================================================

    @staticmethod
    def _present_fields(record: Mapping[str, Any], fields: Sequence[str]) -> List[str]:
        return [f for f in fields if record.get(f) is not None]

    async def encrypt_record(
        self, record: Mapping[str, Any], fields: Sequence[str] = MEMO_FIELDS
    ) -> Dict[str, Any]:
        """
        Return a copy of record with the named fields encrypted.

        Missing or None fields are left as they are.

        Raises:
            EncryptionError: If any field fails; the record must not be written
        """
        names = self._present_fields(record, fields)
        encrypted = await self.encrypt_batch([record[f] for f in names])
        result = dict(record)
        result.update(zip(names, encrypted))
        return result

    async def decrypt_record(
        self, record: Mapping[str, Any], fields: Sequence[str] = MEMO_FIELDS
    ) -> Dict[str, Any]:
        """
        Return a copy of record with the named fields decrypted (single read).

        Raises:
            DecryptionError: If any field cannot be decrypted
        """
        result = dict(record)
        for name in self._present_fields(record, fields):
            result[name] = await self.decrypt(record[name])
        return result

    async def decrypt_records(
        self, records: Sequence[Mapping[str, Any]], fields: Sequence[str] = MEMO_FIELDS
    ) -> List[Dict[str, Any]]:
        """
        Decrypt the named fields of many records (list read).

        All fields of all records go through one batch; a failing field shows
        the sentinel and the rest of the record and list stay intact.
        """
        positions: List[Tuple[int, str]] = []
        values: List[StoredValue] = []
        for index, record in enumerate(records):
            for name in self._present_fields(record, fields):
                positions.append((index, name))
                values.append(record[name])

        decrypted = await self.decrypt_batch(values)

        results = [dict(record) for record in records]
        for (index, name), value in zip(positions, decrypted):
            results[index][name] = value
        return results


def build_service(settings: Optional[Settings] = None) -> FieldEncryptionService:
    """
    Build the server-side service (master key from settings).

    The secret is checked lazily: a missing ENCRYPTION_KEY surfaces as
    ConfigurationError on the first operation that needs the key.
    """
    settings = settings or Settings.from_env()
    provider = MasterKeyProvider(settings.encryption_key, salt=settings.master_key_salt)
    if not provider.is_configured:
        logger.warning("Master key secret is not configured; encryption requests will fail")
    return FieldEncryptionService(
        provider,
        envelope_format=settings.envelope_format,
        policy=FallbackPolicy(settings.decryption_sentinel),
        item_timeout=settings.batch_item_timeout,
    )
