"""
Exception classes for memo field encryption.

Hierarchy:
- EnvelopeError
  - KeyUnavailableError
  - ConfigurationError
  - EncryptionError
  - DecryptionError
    - MalformedEnvelopeError
  - InvalidPinError
  - StorageError
"""

from __future__ import annotations


class EnvelopeError(Exception):
    """Base exception for all memo encryption operations."""

    pass


class KeyUnavailableError(EnvelopeError):
    """Key material cannot be produced (salt, PIN or user id missing, or session locked)."""

    pass


class ConfigurationError(EnvelopeError):
    """Server configuration is missing or invalid (e.g. no master secret)."""

    pass


class EncryptionError(EnvelopeError):
    """AEAD encryption failed. Callers must not persist the plaintext instead."""

    pass


class DecryptionError(EnvelopeError):
    """AEAD decryption failed (wrong key, tag mismatch, bad UTF-8)."""

    pass


class MalformedEnvelopeError(DecryptionError):
    """Stored value is not a structurally valid envelope."""

    pass


class InvalidPinError(EnvelopeError):
    """PIN has the wrong format or does not match the stored hash."""

    pass


class StorageError(EnvelopeError):
    """User key record storage backend error."""

    pass
