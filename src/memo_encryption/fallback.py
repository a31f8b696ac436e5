"""
Classification of stored field values and substitutes for failed reads.

Legacy notes were written before encryption was introduced, so a stored
field may hold an envelope, plain text, or something corrupt. The policy
here decides which is which, and what a caller sees when a read fails.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Any, Mapping, Optional

from .envelope import StoredValue, decode_envelope

logger = logging.getLogger(__name__)

DECRYPTION_FAILED_SENTINEL: str = "[decryption failed]"
MIN_ENCRYPTED_LENGTH: int = 20

_BASE64_PATTERN = re.compile(r"^[A-Za-z0-9+/=]+$")


class FieldState(Enum):
    """What a stored field value appears to be."""

    EMPTY = "empty"
    ENVELOPE = "envelope"
    CORRUPT = "corrupt"
    PLAINTEXT = "plaintext"

    def __str__(self) -> str:
        return self.value


def is_blank(value: Any) -> bool:
    """True for None, empty values and whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, Mapping):
        return not value
    return False


def looks_encrypted(text: Optional[str]) -> bool:
    """
    Heuristic: does this string look like a base64 envelope?

    Base64 alphabet only, at least 20 characters, ASCII only. Legacy
    plaintext (which is often Korean) fails the last check.
    """
    if not text or not isinstance(text, str):
        return False
    return (
        len(text) >= MIN_ENCRYPTED_LENGTH
        and text.isascii()
        and _BASE64_PATTERN.match(text) is not None
    )


class FallbackPolicy:
    """Decides classification and substitute values for stored fields."""

    def __init__(self, sentinel: str = DECRYPTION_FAILED_SENTINEL) -> None:
        self._sentinel = sentinel

    @property
    def sentinel(self) -> str:
        return self._sentinel

    def classify(self, value: Optional[StoredValue]) -> FieldState:
        """Classify a stored value without attempting decryption."""
        if is_blank(value):
            return FieldState.EMPTY
        if isinstance(value, Mapping):
            return FieldState.ENVELOPE if decode_envelope(value) else FieldState.CORRUPT
        if not looks_encrypted(value):
            return FieldState.PLAINTEXT
        if decode_envelope(value.strip()) is None:
            return FieldState.CORRUPT
        return FieldState.ENVELOPE

    def should_encrypt(self, value: Optional[StoredValue]) -> bool:
        """
        Whether the encrypt path should process this value.

        Blank values and values that already look like envelopes are left
        alone, so encrypting twice is a no-op.
        """
        if is_blank(value) or isinstance(value, Mapping):
            return False
        return not looks_encrypted(value)

    def substitute(self, raw: Optional[StoredValue], error: Optional[BaseException] = None) -> str:
        """
        Value to surface in place of a field that failed to decrypt.

        Only the error class and the stored value's length are logged.
        """
        size = len(raw) if isinstance(raw, str) else None
        logger.warning(
            "Substituting sentinel for undecryptable field (error=%s, length=%s)",
            type(error).__name__ if error is not None else None,
            size,
        )
        return self._sentinel
