"""
Envelope framing for encrypted memo fields.

This module provides:
- Envelope: IV plus ciphertext (ciphertext includes the 16-byte GCM tag)
- EnvelopeFormat: the two persisted encodings
- encode_envelope / decode_envelope / parse_envelope: string <-> Envelope

Persisted encodings:
- COMBINED (canonical): base64(iv || ciphertext || tag) as one string
- SPLIT (legacy): {"cipher": base64(ciphertext || tag), "iv": base64(iv)}

No cryptography happens here; this is framing only.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional, Union

from .errors import ConfigurationError, MalformedEnvelopeError

# Framing constants (fixed for compatibility with stored data)
IV_SIZE: int = 12  # 96 bits (standard for AES-GCM)
TAG_SIZE: int = 16  # 128 bits (authentication tag)
MIN_ENVELOPE_SIZE: int = IV_SIZE + TAG_SIZE

# A persisted field value: combined string or split mapping
StoredValue = Union[str, Mapping[str, str]]


class EnvelopeFormat(Enum):
    """Encoding used when writing envelopes."""

    COMBINED = "combined"
    SPLIT = "split"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_str(cls, s: str) -> EnvelopeFormat:
        """Parse from string."""
        try:
            return cls(s.strip().lower())
        except ValueError:
            raise ConfigurationError(f"Invalid envelope format: {s}")


def _b64decode(encoded: str) -> bytes:
    try:
        return base64.b64decode(encoded.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedEnvelopeError(f"Base64 decode error: {e}") from e


def _b64encode(raw: bytes) -> str:
    return base64.standard_b64encode(raw).decode("ascii")


@dataclass(frozen=True)
class Envelope:
    """
    One encrypted field value.

    The ciphertext includes the 16-byte authentication tag appended by AESGCM.
    """

    iv: bytes  # 12 bytes
    ciphertext: bytes  # Ciphertext + 16-byte auth tag

    def to_blob(self) -> bytes:
        """Return the combined layout: iv || ciphertext || tag."""
        return self.iv + self.ciphertext

    @classmethod
    def from_blob(cls, blob: bytes) -> Envelope:
        """
        Parse the combined layout.

        Raises:
            MalformedEnvelopeError: If blob is shorter than IV + tag
        """
        if len(blob) < MIN_ENVELOPE_SIZE:
            raise MalformedEnvelopeError(
                f"Envelope too small: expected at least {MIN_ENVELOPE_SIZE} bytes, got {len(blob)}"
            )
        return cls(iv=blob[:IV_SIZE], ciphertext=blob[IV_SIZE:])

    def to_base64(self) -> str:
        """Encode as a single base64 string (COMBINED format)."""
        return _b64encode(self.to_blob())

    @classmethod
    def from_base64(cls, encoded: str) -> Envelope:
        """
        Decode a COMBINED base64 string.

        Raises:
            MalformedEnvelopeError: If decoding fails or data is too short
        """
        return cls.from_blob(_b64decode(encoded))

    def to_split(self) -> Dict[str, str]:
        """Encode as separate base64 fields (SPLIT format)."""
        return {"cipher": _b64encode(self.ciphertext), "iv": _b64encode(self.iv)}

    @classmethod
    def from_split(cls, cipher: str, iv: str) -> Envelope:
        """
        Decode SPLIT fields.

        Raises:
            MalformedEnvelopeError: If either field is invalid or has the wrong size
        """
        iv_bytes = _b64decode(iv)
        ciphertext = _b64decode(cipher)
        if len(iv_bytes) != IV_SIZE:
            raise MalformedEnvelopeError(
                f"Invalid IV size: expected {IV_SIZE}, got {len(iv_bytes)}"
            )
        if len(ciphertext) < TAG_SIZE:
            raise MalformedEnvelopeError(
                f"Ciphertext too small: expected at least {TAG_SIZE} bytes, got {len(ciphertext)}"
            )
        return cls(iv=iv_bytes, ciphertext=ciphertext)

    def serialize(self, fmt: EnvelopeFormat = EnvelopeFormat.COMBINED) -> StoredValue:
        """Encode in the given persisted format."""
        if fmt is EnvelopeFormat.SPLIT:
            return self.to_split()
        return self.to_base64()


def encode_envelope(
    iv: bytes,
    ciphertext: bytes,
    fmt: EnvelopeFormat = EnvelopeFormat.COMBINED,
) -> StoredValue:
    """Frame an (iv, ciphertext) pair for storage."""
    return Envelope(iv=iv, ciphertext=ciphertext).serialize(fmt)


def parse_envelope(value: StoredValue) -> Envelope:
    """
    Parse a stored value in either persisted format.

    Raises:
        MalformedEnvelopeError: If the value is not a structurally valid envelope
    """
    if isinstance(value, str):
        return Envelope.from_base64(value)
    if isinstance(value, Mapping):
        cipher = value.get("cipher")
        iv = value.get("iv")
        if not isinstance(cipher, str) or not isinstance(iv, str):
            raise MalformedEnvelopeError("Split envelope requires 'cipher' and 'iv' strings")
        return Envelope.from_split(cipher, iv)
    raise MalformedEnvelopeError(f"Unsupported envelope type: {type(value).__name__}")


def decode_envelope(value: StoredValue) -> Optional[Envelope]:
    """
    Parse a stored value, returning None when it is not a valid envelope.

    Used by classification code that must not raise.
    """
    try:
        return parse_envelope(value)
    except MalformedEnvelopeError:
        return None
