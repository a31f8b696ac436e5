"""
Client for the remote encryption endpoint (/api/encrypt, /api/decrypt).

Error policy:
- encrypt / encrypt_batch raise EncryptionError on any HTTP, network or
  response-shape failure; nothing is ever stored unencrypted
- decrypt returns the fallback sentinel on any failure
- decrypt_batch raises DecryptionError when the request itself fails (the
  server already substitutes the sentinel per failing item)
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

import httpx

from .envelope import StoredValue
from .errors import DecryptionError, EncryptionError
from .fallback import DECRYPTION_FAILED_SENTINEL, is_blank

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S: float = 15.0


class RemoteEncryptionClient:
    """
    Async client for a memo-encryption server.

    Usage:
        async with RemoteEncryptionClient("https://notes.example.com") as remote:
            stored = await remote.encrypt("meeting notes")
            text = await remote.decrypt(stored)
    """

    def __init__(
        self,
        base_url: str = "",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT_S,
        sentinel: str = DECRYPTION_FAILED_SENTINEL,
    ) -> None:
        """
        Args:
            base_url: Server root URL (ignored when client is given)
            client: Existing httpx.AsyncClient; not closed by aclose()
            timeout: Request timeout in seconds for an owned client
            sentinel: Value returned by decrypt() on failure
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url, timeout=httpx.Timeout(timeout)
        )
        self._sentinel = sentinel

    async def __aenter__(self) -> RemoteEncryptionClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def sentinel(self) -> str:
        return self._sentinel

    async def _post(self, path: str, data: Any) -> httpx.Response:
        return await self._client.post(path, json={"data": data})

    @staticmethod
    def _error_text(response: httpx.Response, default: str) -> str:
        try:
            body = response.json()
        except ValueError:
            return default
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return default

    # =========================================================================
    # Encryption (fail-closed)
    # =========================================================================

    async def _encrypt_request(self, data: Any) -> Any:
        try:
            response = await self._post("/api/encrypt", data)
        except httpx.HTTPError as e:
            logger.error("Encryption request failed: %s", type(e).__name__)
            raise EncryptionError("Encryption request failed") from e

        if response.is_error:
            logger.error("Encryption API error (status=%d)", response.status_code)
            raise EncryptionError(
                self._error_text(response, f"Encryption API error: {response.status_code}")
            )

        try:
            encrypted = response.json().get("encrypted")
        except (ValueError, AttributeError) as e:
            raise EncryptionError("Encryption API returned an invalid body") from e
        if encrypted is None:
            raise EncryptionError("Encryption API returned no result")
        return encrypted

    async def encrypt(self, plaintext: Optional[str]) -> StoredValue:
        """
        Encrypt one value on the server.

        Blank values are returned without a request (None becomes "").

        Raises:
            EncryptionError: If the request or the server fails
        """
        if is_blank(plaintext):
            return plaintext or ""
        return await self._encrypt_request(plaintext) or ""

    async def encrypt_batch(self, plaintexts: Sequence[Optional[str]]) -> List[StoredValue]:
        """
        Encrypt many values on the server, preserving order.

        Raises:
            EncryptionError: If the request fails or the result does not line up
        """
        if not plaintexts:
            return []
        encrypted = await self._encrypt_request(list(plaintexts))
        if not isinstance(encrypted, list) or len(encrypted) != len(plaintexts):
            raise EncryptionError("Encryption API returned a mismatched batch")
        return encrypted

    # =========================================================================
    # Decryption
    # =========================================================================

    async def decrypt(self, stored: Optional[StoredValue]) -> str:
        """
        Decrypt one value on the server.

        Any failure yields the sentinel; only the failure class is logged.
        """
        if is_blank(stored):
            return stored if isinstance(stored, str) else ""

        try:
            response = await self._post("/api/decrypt", stored)
        except httpx.HTTPError as e:
            logger.warning("Decryption request failed: %s", type(e).__name__)
            return self._sentinel

        if response.is_error:
            logger.warning("Decryption API error (status=%d)", response.status_code)
            return self._sentinel

        try:
            decrypted = response.json().get("decrypted")
        except (ValueError, AttributeError):
            decrypted = None
        if not isinstance(decrypted, str):
            logger.warning("Decryption API returned no result")
            return self._sentinel
        return decrypted

    async def decrypt_batch(self, values: Sequence[Optional[StoredValue]]) -> List[str]:
        """
        Decrypt many values on the server, preserving order.

        Per-item failures come back as the server's sentinel.

        Raises:
            DecryptionError: If the request itself fails
        """
        if not values:
            return []

        try:
            response = await self._post("/api/decrypt", list(values))
        except httpx.HTTPError as e:
            logger.error("Batch decryption request failed: %s", type(e).__name__)
            raise DecryptionError("Batch decryption request failed") from e

        if response.is_error:
            logger.error("Batch decryption API error (status=%d)", response.status_code)
            raise DecryptionError(f"Decryption API error: {response.status_code}")

        try:
            decrypted = response.json().get("decrypted")
        except (ValueError, AttributeError) as e:
            raise DecryptionError("Decryption API returned an invalid body") from e
        if not isinstance(decrypted, list) or len(decrypted) != len(values):
            raise DecryptionError("Decryption API returned a mismatched batch")
        return decrypted
