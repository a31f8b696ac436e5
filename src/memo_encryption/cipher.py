"""
Field-level encryption of memo and tag strings.

encrypt_field / decrypt_field work on one string and never decide a
fallback value: failures are raised and left to the caller.
FieldCipher wraps them as coroutines for the batch coordinator.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from .crypto import AesGcmCipher, SecureKey
from .envelope import EnvelopeFormat, StoredValue, parse_envelope
from .errors import DecryptionError, EncryptionError
from .fallback import is_blank

# Fields larger than this are encrypted in a worker thread
DEFAULT_OFFLOAD_THRESHOLD: int = 64 * 1024


def encrypt_field(
    plaintext: Optional[str],
    key: SecureKey,
    fmt: EnvelopeFormat = EnvelopeFormat.COMBINED,
) -> StoredValue:
    """
    Encrypt one field value.

    Blank values are returned unchanged (None becomes "").

    Raises:
        EncryptionError: If the value is not a string or AES-GCM fails
    """
    if is_blank(plaintext):
        return plaintext or ""
    if not isinstance(plaintext, str):
        raise EncryptionError(f"Cannot encrypt value of type {type(plaintext).__name__}")

    envelope = AesGcmCipher.encrypt(key, plaintext.encode("utf-8"))
    return envelope.serialize(fmt)


def decrypt_field(stored: Optional[StoredValue], key: SecureKey) -> str:
    """
    Decrypt one stored field value (combined string or split mapping).

    Blank values are returned unchanged (None becomes "").

    Raises:
        MalformedEnvelopeError: If the value is not a valid envelope
        DecryptionError: If authentication fails or the plaintext is not UTF-8
    """
    if is_blank(stored):
        return stored if isinstance(stored, str) else ""

    envelope = parse_envelope(stored)
    plaintext = AesGcmCipher.decrypt(key, envelope)
    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptionError("Decrypted field is not valid UTF-8") from e


class FieldCipher:
    """
    Coroutine wrapper around encrypt_field / decrypt_field.

    Small fields run inline; fields above offload_threshold bytes run in a
    worker thread.
    """

    def __init__(
        self,
        envelope_format: EnvelopeFormat = EnvelopeFormat.COMBINED,
        offload_threshold: int = DEFAULT_OFFLOAD_THRESHOLD,
    ) -> None:
        self._format = envelope_format
        self._offload_threshold = offload_threshold

    @property
    def envelope_format(self) -> EnvelopeFormat:
        return self._format

    def _is_large(self, value: Optional[StoredValue]) -> bool:
        return isinstance(value, str) and len(value) > self._offload_threshold

    async def encrypt_field(self, plaintext: Optional[str], key: SecureKey) -> StoredValue:
        """Encrypt one field in the configured envelope format."""
        if self._is_large(plaintext):
            return await asyncio.to_thread(encrypt_field, plaintext, key, self._format)
        return encrypt_field(plaintext, key, self._format)

    async def decrypt_field(self, stored: Optional[StoredValue], key: SecureKey) -> str:
        """Decrypt one field stored in either envelope format."""
        if self._is_large(stored):
            return await asyncio.to_thread(decrypt_field, stored, key)
        return decrypt_field(stored, key)
