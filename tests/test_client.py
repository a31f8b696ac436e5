"""
Tests for RemoteEncryptionClient against the FastAPI app (in-process ASGI).
"""

from __future__ import annotations

from typing import AsyncGenerator

import httpx
import pytest

from memo_encryption import (
    DECRYPTION_FAILED_SENTINEL,
    DecryptionError,
    EncryptionError,
    EnvelopeFormat,
    FieldEncryptionService,
    MasterKeyProvider,
    RemoteEncryptionClient,
)
from memo_encryption.api import create_app

SECRET = "test-server-secret"


def _remote_for(service: FieldEncryptionService) -> RemoteEncryptionClient:
    transport = httpx.ASGITransport(app=create_app(service))
    return RemoteEncryptionClient(
        client=httpx.AsyncClient(transport=transport, base_url="http://testserver")
    )


def _refusing_client() -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://testserver")


def _answering_client(status: int, body) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json=body)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://testserver")


@pytest.fixture
async def remote() -> AsyncGenerator[RemoteEncryptionClient, None]:
    client = _remote_for(FieldEncryptionService(MasterKeyProvider(SECRET)))
    yield client
    await client._client.aclose()


@pytest.fixture
async def unconfigured_remote() -> AsyncGenerator[RemoteEncryptionClient, None]:
    client = _remote_for(FieldEncryptionService(MasterKeyProvider(None)))
    yield client
    await client._client.aclose()


class TestRemoteEncrypt:
    async def test_round_trip(self, remote: RemoteEncryptionClient):
        stored = await remote.encrypt("회의 노트")

        assert stored != "회의 노트"
        assert await remote.decrypt(stored) == "회의 노트"

    async def test_blank_skips_request(self):
        remote = RemoteEncryptionClient(client=_refusing_client())

        assert await remote.encrypt("") == ""
        assert await remote.encrypt(None) == ""
        assert await remote.encrypt("   ") == "   "

    async def test_server_error_raises(self, unconfigured_remote: RemoteEncryptionClient):
        with pytest.raises(EncryptionError, match="Encryption failed"):
            await unconfigured_remote.encrypt("hello")

    async def test_network_error_raises(self):
        remote = RemoteEncryptionClient(client=_refusing_client())
        with pytest.raises(EncryptionError):
            await remote.encrypt("hello")

    async def test_missing_result_raises(self):
        remote = RemoteEncryptionClient(client=_answering_client(200, {"encrypted": None}))
        with pytest.raises(EncryptionError):
            await remote.encrypt("hello")

    async def test_batch_round_trip(self, remote: RemoteEncryptionClient):
        plaintexts = ["title", "", "tag-name"]

        encrypted = await remote.encrypt_batch(plaintexts)

        assert len(encrypted) == 3
        assert encrypted[1] == ""
        assert await remote.decrypt_batch(encrypted) == plaintexts

    async def test_batch_server_error_raises(self, unconfigured_remote: RemoteEncryptionClient):
        with pytest.raises(EncryptionError):
            await unconfigured_remote.encrypt_batch(["a", "b"])

    async def test_batch_mismatch_raises(self):
        remote = RemoteEncryptionClient(client=_answering_client(200, {"encrypted": ["only-one"]}))
        with pytest.raises(EncryptionError):
            await remote.encrypt_batch(["a", "b"])

    async def test_empty_batch(self):
        remote = RemoteEncryptionClient(client=_refusing_client())
        assert await remote.encrypt_batch([]) == []


class TestRemoteDecrypt:
    async def test_undecryptable_value_yields_sentinel(self, remote: RemoteEncryptionClient):
        assert await remote.decrypt("not an envelope") == DECRYPTION_FAILED_SENTINEL

    async def test_network_error_yields_sentinel(self):
        remote = RemoteEncryptionClient(client=_refusing_client())
        assert await remote.decrypt("c29tZSBjaXBoZXJ0ZXh0IGJ5dGVz") == DECRYPTION_FAILED_SENTINEL

    async def test_custom_sentinel(self):
        remote = RemoteEncryptionClient(client=_refusing_client(), sentinel="[locked]")
        assert await remote.decrypt("c29tZSBjaXBoZXJ0ZXh0IGJ5dGVz") == "[locked]"

    async def test_missing_result_yields_sentinel(self):
        remote = RemoteEncryptionClient(client=_answering_client(200, {}))
        assert await remote.decrypt("c29tZSBjaXBoZXJ0ZXh0IGJ5dGVz") == DECRYPTION_FAILED_SENTINEL

    async def test_blank_passes_through(self):
        remote = RemoteEncryptionClient(client=_refusing_client())
        assert await remote.decrypt("") == ""
        assert await remote.decrypt(None) == ""

    async def test_batch_isolates_item_failures(self, remote: RemoteEncryptionClient):
        good = await remote.encrypt_batch(["alpha", "gamma"])

        result = await remote.decrypt_batch([good[0], "broken", good[1]])

        assert result == ["alpha", DECRYPTION_FAILED_SENTINEL, "gamma"]

    async def test_batch_request_failure_raises(self):
        remote = RemoteEncryptionClient(client=_refusing_client())
        with pytest.raises(DecryptionError):
            await remote.decrypt_batch(["c29tZSBjaXBoZXJ0ZXh0IGJ5dGVz"])

    async def test_batch_server_error_raises(self, unconfigured_remote: RemoteEncryptionClient):
        with pytest.raises(DecryptionError):
            await unconfigured_remote.decrypt_batch(["anything"])


class TestRemoteSplitFormat:
    async def test_round_trip(self):
        service = FieldEncryptionService(MasterKeyProvider(SECRET), envelope_format=EnvelopeFormat.SPLIT)
        remote = _remote_for(service)

        stored = await remote.encrypt("hello")
        batch = await remote.encrypt_batch(["a title", "body"])

        assert set(stored) == {"cipher", "iv"}
        assert await remote.decrypt(stored) == "hello"
        assert await remote.decrypt_batch(batch) == ["a title", "body"]
        await remote._client.aclose()


class TestClientLifecycle:
    async def test_owned_client_is_closed(self):
        async with RemoteEncryptionClient("http://testserver") as remote:
            inner = remote._client
        assert inner.is_closed

    async def test_borrowed_client_stays_open(self):
        borrowed = _refusing_client()
        async with RemoteEncryptionClient(client=borrowed):
            pass
        assert not borrowed.is_closed
        await borrowed.aclose()
