"""
Batch encryption/decryption over ordered sequences of fields.

Output index i always corresponds to input index i. Items run as
independent coroutines; the coordinator waits for all of them.

- encrypt_batch: any item failure aborts the whole batch (nothing partial
  is returned, so nothing partial can be persisted)
- decrypt_batch: item failures are replaced by the fallback substitute
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, List, Optional, Sequence, Tuple, TypeVar

from .cipher import FieldCipher
from .crypto import SecureKey
from .envelope import StoredValue
from .errors import DecryptionError, EncryptionError
from .fallback import FallbackPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BatchCoordinator:
    """Fans field operations out concurrently while preserving order."""

    def __init__(
        self,
        cipher: Optional[FieldCipher] = None,
        policy: Optional[FallbackPolicy] = None,
        item_timeout: Optional[float] = None,
    ) -> None:
        """
        Args:
            cipher: FieldCipher used for each item
            policy: FallbackPolicy for classification and substitutes
            item_timeout: Optional per-item timeout in seconds
        """
        self._cipher = cipher or FieldCipher()
        self._policy = policy or FallbackPolicy()
        self._item_timeout = item_timeout

    @property
    def policy(self) -> FallbackPolicy:
        return self._policy

    async def _bounded(self, op: Awaitable[T]) -> T:
        if self._item_timeout is None:
            return await op
        return await asyncio.wait_for(op, timeout=self._item_timeout)

    async def _encrypt_one(self, value: Optional[str], key: SecureKey) -> StoredValue:
        if not self._policy.should_encrypt(value):
            return value if value is not None else ""
        try:
            return await self._bounded(self._cipher.encrypt_field(value, key))
        except asyncio.TimeoutError as e:
            raise EncryptionError("Field encryption timed out") from e

    async def _decrypt_one(
        self, value: Optional[StoredValue], key: SecureKey
    ) -> Tuple[str, bool]:
        """Return (plaintext or substitute, whether the item failed)."""
        try:
            return await self._bounded(self._cipher.decrypt_field(value, key)), False
        except (DecryptionError, asyncio.TimeoutError) as e:
            return self._policy.substitute(value, e), True

    async def encrypt_batch(
        self, plaintexts: Sequence[Optional[str]], key: SecureKey
    ) -> List[StoredValue]:
        """
        Encrypt every item, preserving order.

        Values that are blank or already look like envelopes pass through.

        Raises:
            EncryptionError: If any item fails; no partial result is returned
        """
        results = await asyncio.gather(
            *(self._encrypt_one(value, key) for value in plaintexts),
            return_exceptions=True,
        )

        for index, result in enumerate(results):
            if isinstance(result, BaseException):
                logger.error(
                    "Batch encryption failed at item %d of %d: %s",
                    index,
                    len(results),
                    type(result).__name__,
                )
                if isinstance(result, EncryptionError):
                    raise result
                raise EncryptionError(f"Batch encryption failed at item {index}") from result

        return list(results)

    async def decrypt_batch(
        self, values: Sequence[Optional[StoredValue]], key: SecureKey
    ) -> List[str]:
        """
        Decrypt every item, preserving order.

        A failing item yields the fallback sentinel at its own position and
        never aborts the rest of the batch.
        """
        outcomes = await asyncio.gather(*(self._decrypt_one(value, key) for value in values))
        failed = sum(1 for _, substituted in outcomes if substituted)
        if failed:
            logger.info("Decrypted batch of %d with %d substituted item(s)", len(outcomes), failed)
        return [text for text, _ in outcomes]
