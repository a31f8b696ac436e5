"""
Cryptographic primitives for AES-256-GCM field encryption.

This module provides:
- SecureKey: Secure key wrapper with automatic zeroization
- AesGcmCipher: AES-256-GCM encryption/decryption producing Envelopes
"""

from __future__ import annotations

import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .envelope import IV_SIZE, TAG_SIZE, Envelope
from .errors import DecryptionError, EncryptionError, KeyUnavailableError

# Cryptographic constants
AES_256_KEY_SIZE: int = 32  # 256 bits
NONCE_SIZE: int = IV_SIZE

__all__ = [
    "AES_256_KEY_SIZE",
    "NONCE_SIZE",
    "TAG_SIZE",
    "AesGcmCipher",
    "SecureKey",
    "generate_random_bytes",
]


class SecureKey:
    """
    Secure key wrapper with automatic memory cleanup on deletion.

    Uses bytearray internally for mutable zeroing in __del__.
    Note: Python's garbage collector doesn't guarantee immediate cleanup,
    so this is best-effort zeroization.
    """

    __slots__ = ("_bytes",)

    def __init__(self, key_bytes: bytes | bytearray) -> None:
        """
        Create a SecureKey from raw bytes.

        Args:
            key_bytes: Raw key material (32 bytes for AES-256)
        """
        if not isinstance(key_bytes, (bytes, bytearray)):
            raise KeyUnavailableError("Key must be bytes or bytearray")
        if len(key_bytes) != AES_256_KEY_SIZE:
            raise KeyUnavailableError(
                f"Invalid key size: expected {AES_256_KEY_SIZE}, got {len(key_bytes)}"
            )
        self._bytes = bytearray(key_bytes)

    @classmethod
    def generate(cls) -> SecureKey:
        """Generate a cryptographically secure random 32-byte key."""
        return cls(generate_random_bytes(AES_256_KEY_SIZE))

    def as_bytes(self) -> bytes:
        """Return key as immutable bytes."""
        return bytes(self._bytes)

    def __len__(self) -> int:
        return len(self._bytes)

    def __repr__(self) -> str:
        """Redacted representation to prevent accidental key disclosure."""
        return "SecureKey([REDACTED])"

    def __del__(self) -> None:
        """Zero memory on deletion (best-effort)."""
        if hasattr(self, "_bytes"):
            for i in range(len(self._bytes)):
                self._bytes[i] = 0


class AesGcmCipher:
    """
    AES-256-GCM authenticated encryption.

    Every call to encrypt draws a fresh random 12-byte IV.
    """

    @staticmethod
    def encrypt(key: SecureKey, plaintext: bytes) -> Envelope:
        """
        Encrypt plaintext with AES-256-GCM.

        Args:
            key: 32-byte encryption key
            plaintext: Data to encrypt

        Returns:
            Envelope with IV and ciphertext (includes auth tag)

        Raises:
            EncryptionError: If encryption fails
        """
        iv = generate_random_bytes(IV_SIZE)

        try:
            ciphertext = AESGCM(key.as_bytes()).encrypt(iv, plaintext, None)
        except Exception as e:
            raise EncryptionError(f"Encryption error: {e}") from e

        return Envelope(iv=iv, ciphertext=ciphertext)

    @staticmethod
    def decrypt(key: SecureKey, envelope: Envelope) -> bytes:
        """
        Decrypt an Envelope with AES-256-GCM.

        Args:
            key: 32-byte decryption key
            envelope: Envelope with IV and ciphertext

        Returns:
            Decrypted plaintext bytes

        Raises:
            DecryptionError: If the IV size is invalid or authentication fails
        """
        if len(envelope.iv) != IV_SIZE:
            raise DecryptionError(
                f"Invalid nonce size: expected {IV_SIZE}, got {len(envelope.iv)}"
            )

        try:
            return AESGCM(key.as_bytes()).decrypt(envelope.iv, envelope.ciphertext, None)
        except InvalidTag:
            # Generic error to prevent oracle attacks
            raise DecryptionError("Decryption failed") from None


def generate_random_bytes(length: int) -> bytes:
    """Generate cryptographically secure random bytes."""
    return secrets.token_bytes(length)
