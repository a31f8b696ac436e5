"""
Memo Encryption Benchmark CLI.

Usage:
    memo-encryption-benchmark

Or run directly:
    python -m memo_encryption.benchmark

Set ENCRYPTION_KEY (environment or .env file) to also benchmark the
server master key; otherwise only the PIN-derived key path runs.
"""

from __future__ import annotations

import asyncio
import sys
import time
from uuid import uuid4

from memo_encryption.config import Settings
from memo_encryption.crypto import AesGcmCipher, SecureKey
from memo_encryption.key_provider import DerivedKeyProvider, MasterKeyProvider
from memo_encryption.pin import generate_user_salt
from memo_encryption.service import FieldEncryptionService


def _section(title: str) -> None:
    print("+" + "-" * 68 + "+")
    print(f"|  {title}" + " " * max(0, 66 - len(title)) + "|")
    print("+" + "-" * 68 + "+")


async def run_benchmark() -> None:
    """Run the memo encryption benchmark."""
    print("=== Memo Encryption Benchmark ===\n")

    settings = Settings.from_env()

    # Get test quantity from user
    try:
        user_input = input("Enter number of fields to test (default: 500): ").strip()
        test_quantity = int(user_input) if user_input else 500
    except ValueError:
        test_quantity = 500
    if test_quantity < 3:
        print("ERROR: at least 3 fields are required")
        sys.exit(1)
    print(f"Testing with {test_quantity} fields\n")

    print("=" * 70)
    print("                    BENCHMARK START")
    print("=" * 70 + "\n")

    # ========================================================================
    # Demo 1: PIN key derivation
    # ========================================================================
    _section("Demo 1: PIN Key Derivation (PBKDF2, 100k iterations)")

    provider = DerivedKeyProvider(str(uuid4()), generate_user_salt(), "123456")
    derive_start = time.perf_counter()
    await provider.get_key()
    derive_time = time.perf_counter() - derive_start

    print("[OK] Derived user key")
    print(f"[PERF] Derivation: {derive_time * 1000:.3f}ms\n")

    service = await FieldEncryptionService.new(provider, settings)

    # ========================================================================
    # Demo 2: Single field encryption/decryption
    # ========================================================================
    _section("Demo 2: Single Field Encryption/Decryption")

    plaintext = "회의 노트: quarterly planning, action items and follow-ups"

    encrypt_start = time.perf_counter()
    stored = await service.encrypt(plaintext)
    encrypt_time = time.perf_counter() - encrypt_start

    decrypt_start = time.perf_counter()
    recovered = await service.decrypt(stored)
    decrypt_time = time.perf_counter() - decrypt_start

    if recovered != plaintext:
        print("[ERROR] Round-trip mismatch")
        sys.exit(1)

    print("[OK] Field encrypted/decrypted successfully")
    print(f"[PERF] Encryption: {encrypt_time * 1000:.3f}ms ({1.0 / encrypt_time:.2f} ops/sec)")
    print(f"[PERF] Decryption: {decrypt_time * 1000:.3f}ms ({1.0 / decrypt_time:.2f} ops/sec)\n")

    # ========================================================================
    # Demo 3: Batch encryption
    # ========================================================================
    _section(f"Demo 3: Batch Encryption ({test_quantity} fields)")

    fields = [f"Note {i}: {plaintext}" for i in range(test_quantity)]

    batch_enc_start = time.perf_counter()
    encrypted = await service.encrypt_batch(fields)
    batch_enc_time = time.perf_counter() - batch_enc_start

    print(f"[OK] Encrypted {len(encrypted)} fields")
    print(f"[PERF] Time: {batch_enc_time * 1000:.3f}ms | Rate: {test_quantity / batch_enc_time:.2f} ops/sec\n")

    # ========================================================================
    # Demo 4: Batch decryption with corrupted items
    # ========================================================================
    _section(f"Demo 4: Batch Decryption ({test_quantity} fields, 2 unreadable)")

    corrupted = list(encrypted)
    # Item 1 was written under another user's key
    corrupted[1] = AesGcmCipher.encrypt(SecureKey.generate(), fields[1].encode("utf-8")).to_base64()
    corrupted[-1] = "not an envelope"

    batch_dec_start = time.perf_counter()
    decrypted = await service.decrypt_batch(corrupted)
    batch_dec_time = time.perf_counter() - batch_dec_start

    substituted = sum(1 for value in decrypted if value == service.policy.sentinel)
    intact = decrypted[0] == fields[0] and decrypted[2] == fields[2]

    print(f"[OK] Decrypted {len(decrypted)} fields, {substituted} substituted")
    print(f"[DEBUG] Order preserved around failures: {intact}")
    print(f"[PERF] Time: {batch_dec_time * 1000:.3f}ms | Rate: {test_quantity / batch_dec_time:.2f} ops/sec\n")

    # ========================================================================
    # Demo 5: Server master key
    # ========================================================================
    _section("Demo 5: Server Master Key")

    master_time = None
    if not settings.encryption_key:
        print("[SKIP] ENCRYPTION_KEY not set\n")
    else:
        master = MasterKeyProvider(settings.encryption_key, salt=settings.master_key_salt)
        master_start = time.perf_counter()
        await master.get_key()
        master_time = time.perf_counter() - master_start
        print("[OK] Derived master key")
        print(f"[PERF] Derivation: {master_time * 1000:.3f}ms\n")

    # ========================================================================
    # Summary
    # ========================================================================
    print("=" * 70)
    print("                    BENCHMARK SUMMARY")
    print("=" * 70 + "\n")

    print("+- Performance Summary ---------------------------------------------+")
    print("|                                                                    |")

    derive_ms = f"{derive_time * 1000:.3f}"
    print(f"|  PIN Derivation:    {derive_ms} ms" + " " * (38 - len(derive_ms)) + "|")

    enc_rate = f"{test_quantity / batch_enc_time:.2f}"
    print(f"|  Batch Encryption:  {enc_rate} ops/sec" + " " * (33 - len(enc_rate)) + "|")

    dec_rate = f"{test_quantity / batch_dec_time:.2f}"
    print(f"|  Batch Decryption:  {dec_rate} ops/sec" + " " * (33 - len(dec_rate)) + "|")

    if master_time is not None:
        master_ms = f"{master_time * 1000:.3f}"
        print(f"|  Master Derivation: {master_ms} ms" + " " * (38 - len(master_ms)) + "|")

    print("|                                                                    |")
    print("+--------------------------------------------------------------------+")

    print("\nTest Configuration:")
    print(f"  - Total fields tested: {test_quantity}")
    print("  - Crypto: AES-256-GCM, 12-byte IV, 16-byte tag")
    print("  - KDF: PBKDF2-HMAC-SHA256, 100,000 iterations")
    print(f"  - Envelope format: {settings.envelope_format}")

    print("\n" + "=" * 70)
    print("                    BENCHMARK COMPLETE")
    print("=" * 70 + "\n")


def main() -> None:
    """CLI entry point for memo-encryption-benchmark command."""
    asyncio.run(run_benchmark())


if __name__ == "__main__":
    main()
