"""
Tests for AES-256-GCM primitives and SecureKey.
"""

from __future__ import annotations

import pytest

from memo_encryption import (
    AES_256_KEY_SIZE,
    IV_SIZE,
    TAG_SIZE,
    AesGcmCipher,
    DecryptionError,
    Envelope,
    KeyUnavailableError,
    SecureKey,
    generate_random_bytes,
)


class TestSecureKey:
    def test_generate_has_aes256_size(self):
        assert len(SecureKey.generate()) == AES_256_KEY_SIZE

    def test_repr_is_redacted(self):
        key = SecureKey(b"\x07" * AES_256_KEY_SIZE)
        assert "07" not in repr(key)
        assert repr(key) == "SecureKey([REDACTED])"

    def test_rejects_wrong_size(self):
        with pytest.raises(KeyUnavailableError):
            SecureKey(b"\x00" * 16)

    def test_rejects_non_bytes(self):
        with pytest.raises(KeyUnavailableError):
            SecureKey("x" * AES_256_KEY_SIZE)  # type: ignore[arg-type]


class TestAesGcmCipher:
    def test_round_trip(self):
        key = SecureKey.generate()
        envelope = AesGcmCipher.encrypt(key, b"hello")
        assert AesGcmCipher.decrypt(key, envelope) == b"hello"

    def test_layout_sizes(self):
        envelope = AesGcmCipher.encrypt(SecureKey.generate(), b"hello")
        assert len(envelope.iv) == IV_SIZE
        assert len(envelope.ciphertext) == len(b"hello") + TAG_SIZE

    def test_fresh_iv_per_encryption(self):
        key = SecureKey.generate()
        first = AesGcmCipher.encrypt(key, b"same")
        second = AesGcmCipher.encrypt(key, b"same")
        assert first.iv != second.iv
        assert first.ciphertext != second.ciphertext

    def test_wrong_key_fails(self):
        envelope = AesGcmCipher.encrypt(SecureKey.generate(), b"secret")
        with pytest.raises(DecryptionError):
            AesGcmCipher.decrypt(SecureKey.generate(), envelope)

    def test_tampered_ciphertext_fails(self):
        key = SecureKey.generate()
        envelope = AesGcmCipher.encrypt(key, b"secret")
        flipped = bytes([envelope.ciphertext[0] ^ 0x01]) + envelope.ciphertext[1:]
        with pytest.raises(DecryptionError):
            AesGcmCipher.decrypt(key, Envelope(iv=envelope.iv, ciphertext=flipped))

    def test_bad_iv_size(self):
        key = SecureKey.generate()
        envelope = AesGcmCipher.encrypt(key, b"secret")
        with pytest.raises(DecryptionError):
            AesGcmCipher.decrypt(key, Envelope(iv=b"\x00" * 8, ciphertext=envelope.ciphertext))


def test_generate_random_bytes_length():
    assert len(generate_random_bytes(12)) == 12
