"""
Key-value storage for streak counters.

Values are plain strings (counts stringified, dates ISO formatted).
InMemoryKeyValueStore is the default and the test double;
RedisKeyValueStore is used when STREAK_STORAGE_BACKEND=redis.
"""

from __future__ import annotations

from typing import Dict, Optional, Protocol

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from backend.core.config import Settings, settings as default_settings
from backend.core.errors import StorageError


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...


class InMemoryKeyValueStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def snapshot(self) -> Dict[str, str]:
        return dict(self._data)


class RedisKeyValueStore:
    def __init__(self, client: "aioredis.Redis", prefix: str = "smi:"):
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "smi:") -> "RedisKeyValueStore":
        return cls(aioredis.Redis.from_url(url, decode_responses=True), prefix=prefix)

    async def get(self, key: str) -> Optional[str]:
        try:
            value = await self._client.get(self._prefix + key)
        except RedisError as e:
            raise StorageError(f"redis get failed for {key}: {e}") from e
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str) -> None:
        try:
            await self._client.set(self._prefix + key, value)
        except RedisError as e:
            raise StorageError(f"redis set failed for {key}: {e}") from e


def build_key_value_store(cfg: Optional[Settings] = None) -> KeyValueStore:
    cfg = cfg or default_settings
    if cfg.STREAK_STORAGE_BACKEND == "redis":
        return RedisKeyValueStore.from_url(cfg.REDIS_URL)
    return InMemoryKeyValueStore()
