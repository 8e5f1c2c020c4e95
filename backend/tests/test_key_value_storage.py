from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from backend.core.config import Settings
from backend.core.errors import StorageError
from backend.features.badges.storage import (
    InMemoryKeyValueStore,
    RedisKeyValueStore,
    build_key_value_store,
)


@pytest.mark.asyncio
async def test_in_memory_round_trip():
    store = InMemoryKeyValueStore({"a": "1"})
    await store.set("b", "2")

    assert await store.get("a") == "1"
    assert await store.get("b") == "2"
    assert await store.get("missing") is None
    assert store.snapshot() == {"a": "1", "b": "2"}


@pytest.mark.asyncio
async def test_redis_store_prefixes_keys():
    client = AsyncMock()
    client.get.return_value = b"3"
    store = RedisKeyValueStore(client, prefix="smi:")

    assert await store.get("u1:@morning_routine_streak") == "3"
    await store.set("u1:@morning_routine_streak", "4")

    client.get.assert_awaited_once_with("smi:u1:@morning_routine_streak")
    client.set.assert_awaited_once_with("smi:u1:@morning_routine_streak", "4")


@pytest.mark.asyncio
async def test_redis_errors_become_storage_errors():
    client = AsyncMock()
    client.get.side_effect = RedisConnectionError("refused")
    client.set.side_effect = RedisConnectionError("refused")
    store = RedisKeyValueStore(client)

    with pytest.raises(StorageError):
        await store.get("k")
    with pytest.raises(StorageError):
        await store.set("k", "v")


def test_backend_selection():
    assert isinstance(build_key_value_store(Settings(STREAK_STORAGE_BACKEND="memory")), InMemoryKeyValueStore)
    assert isinstance(
        build_key_value_store(Settings(STREAK_STORAGE_BACKEND="redis", REDIS_URL="redis://localhost:6379/0")),
        RedisKeyValueStore,
    )
