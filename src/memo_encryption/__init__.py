"""
Memo Encryption Library

Envelope encryption for the fields of a PIN-protected note-taking app:
memo titles, memo bodies and tag names are stored as AES-256-GCM envelopes.

Overview
--------
- **Derived keys**: per-user key from (user id, salt, PIN) via PBKDF2
- **Master key**: server-wide key from the ENCRYPTION_KEY secret
- **Envelopes**: base64(iv || ciphertext || tag); legacy {"cipher", "iv"} still readable
- **Batches**: order-preserving, concurrent, one bad record never hides the rest

Quick Start
-----------
```python
import asyncio
from memo_encryption import (
    InMemoryUserKeyStorage,
    KeySession,
)

async def main():
    session = KeySession(InMemoryUserKeyStorage())
    await session.set_pin("user-1", "123456")
    service = session.service()

    stored = await service.encrypt_record({"title": "회의 노트", "content": "..."})
    memo = await service.decrypt_record(stored)

    # List views never raise for one bad record
    memos = await service.decrypt_records([stored, {"title": "corrupt!!", "content": ""}])

asyncio.run(main())
```

Modules
-------
- `crypto`: AES-256-GCM primitives and SecureKey
- `envelope`: envelope framing (combined and split encodings)
- `key_provider`: derived and master key providers
- `cipher`: single field encryption/decryption
- `fallback`: classification of stored values and failure substitutes
- `batch`: order-preserving batch coordinator
- `service`: FieldEncryptionService, the main API
- `session`: PIN-gated KeySession
- `storage` / `postgres_storage`: user salt and PIN hash storage
- `api`: FastAPI endpoints for the server-held-key deployment
- `client`: RemoteEncryptionClient for those endpoints
- `errors`: Error types and exception classes
"""

__version__ = "0.1.0"

# ============================================================================
# Crypto Exports
# ============================================================================

from .crypto import (
    AES_256_KEY_SIZE,
    NONCE_SIZE,
    AesGcmCipher,
    SecureKey,
    generate_random_bytes,
)

from .envelope import (
    IV_SIZE,
    MIN_ENVELOPE_SIZE,
    TAG_SIZE,
    Envelope,
    EnvelopeFormat,
    decode_envelope,
    encode_envelope,
    parse_envelope,
)

# ============================================================================
# Error Exports
# ============================================================================

from .errors import (
    ConfigurationError,
    DecryptionError,
    EncryptionError,
    EnvelopeError,
    InvalidPinError,
    KeyUnavailableError,
    MalformedEnvelopeError,
    StorageError,
)

# ============================================================================
# Keys, Fields and Batches
# ============================================================================

from .key_provider import (
    PBKDF2_ITERATIONS,
    DerivedKeyProvider,
    KeyProvider,
    MasterKeyProvider,
    derive_master_key,
    derive_user_key,
)

from .cipher import FieldCipher, decrypt_field, encrypt_field

from .fallback import (
    DECRYPTION_FAILED_SENTINEL,
    FallbackPolicy,
    FieldState,
    looks_encrypted,
)

from .batch import BatchCoordinator

from .config import Settings

from .service import (
    MEMO_FIELDS,
    TAG_FIELDS,
    FieldEncryptionService,
    build_service,
)

# ============================================================================
# Sessions and Storage
# ============================================================================

from .storage import (
    InMemoryUserKeyStorage,
    UserKeyRecord,
    UserKeyStorage,
)

from .postgres_storage import PostgresUserKeyStorage

from .session import KeySession

from .client import RemoteEncryptionClient

# ============================================================================
# Public API
# ============================================================================

__all__ = [
    # Version
    "__version__",
    # Crypto
    "AES_256_KEY_SIZE",
    "NONCE_SIZE",
    "AesGcmCipher",
    "SecureKey",
    "generate_random_bytes",
    # Envelope
    "IV_SIZE",
    "TAG_SIZE",
    "MIN_ENVELOPE_SIZE",
    "Envelope",
    "EnvelopeFormat",
    "encode_envelope",
    "decode_envelope",
    "parse_envelope",
    # Errors
    "EnvelopeError",
    "KeyUnavailableError",
    "ConfigurationError",
    "EncryptionError",
    "DecryptionError",
    "MalformedEnvelopeError",
    "InvalidPinError",
    "StorageError",
    # Keys
    "PBKDF2_ITERATIONS",
    "KeyProvider",
    "DerivedKeyProvider",
    "MasterKeyProvider",
    "derive_user_key",
    "derive_master_key",
    # Fields and batches
    "FieldCipher",
    "encrypt_field",
    "decrypt_field",
    "DECRYPTION_FAILED_SENTINEL",
    "FallbackPolicy",
    "FieldState",
    "looks_encrypted",
    "BatchCoordinator",
    # Service
    "Settings",
    "FieldEncryptionService",
    "build_service",
    "MEMO_FIELDS",
    "TAG_FIELDS",
    # Sessions and storage
    "UserKeyStorage",
    "InMemoryUserKeyStorage",
    "PostgresUserKeyStorage",
    "UserKeyRecord",
    "KeySession",
    # Remote endpoint client
    "RemoteEncryptionClient",
]
