"""Tests for shared-key storage."""

from datetime import timedelta

import pytest
from ypsopump.storage import InMemoryKeyStorage
from ypsopump.types import InvalidKeyError, KeyExpiredError, KeyNotFoundError
from .test_vectors import SHARED_KEY_HEX

SERIAL = "10175983"


@pytest.fixture
def storage() -> InMemoryKeyStorage:
    return InMemoryKeyStorage()


@pytest.fixture
def key() -> bytes:
    return bytes.fromhex(SHARED_KEY_HEX)


class TestInMemoryKeyStorage:
    """Test store/retrieve/expiry behaviour."""

    @pytest.mark.asyncio
    async def test_store_and_retrieve(self, storage: InMemoryKeyStorage, key: bytes) -> None:
        await storage.store(SERIAL, key)
        assert await storage.retrieve(SERIAL) == key
        assert await storage.has_key(SERIAL)

    @pytest.mark.asyncio
    async def test_default_validity_is_28_days(self, storage: InMemoryKeyStorage, key: bytes) -> None:
        entry = await storage.store(SERIAL, key)
        assert entry.expires_at - entry.created_at == timedelta(days=28)
        assert not entry.is_expired()
        assert entry.remaining() > timedelta(days=27)

    @pytest.mark.asyncio
    async def test_missing_key(self, storage: InMemoryKeyStorage) -> None:
        with pytest.raises(KeyNotFoundError) as exc_info:
            await storage.retrieve(SERIAL)
        assert exc_info.value.serial == SERIAL

    @pytest.mark.asyncio
    async def test_expired_key(self, storage: InMemoryKeyStorage, key: bytes) -> None:
        await storage.store(SERIAL, key, validity=timedelta(seconds=-1))
        assert not await storage.has_key(SERIAL)
        with pytest.raises(KeyExpiredError):
            await storage.retrieve(SERIAL)
        assert storage.get_entry(SERIAL).remaining() == timedelta(0)

    @pytest.mark.asyncio
    async def test_delete(self, storage: InMemoryKeyStorage, key: bytes) -> None:
        await storage.store(SERIAL, key)
        await storage.delete(SERIAL)
        assert not await storage.has_key(SERIAL)
        await storage.delete(SERIAL)

    @pytest.mark.asyncio
    async def test_rejects_invalid_key(self, storage: InMemoryKeyStorage) -> None:
        with pytest.raises(InvalidKeyError):
            await storage.store(SERIAL, bytes(32))
