# simplechain/storage/redis_store.py

import logging
from typing import AsyncIterator, Optional, Tuple

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from simplechain.exceptions import KeyNotFoundError, StorageError
from simplechain.storage.base import Storage

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "simplechain:"


class RedisStorage(Storage):
    """
    Stores ledger keys in Redis under a namespace prefix, so several ledgers
    (or other applications) can share one database.
    """

    def __init__(self, redis_url: str, key_prefix: str = DEFAULT_KEY_PREFIX,
                 client: Optional[aioredis.Redis] = None):
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self._client = client

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    @property
    def client(self) -> aioredis.Redis:
        if self._client is None:
            raise StorageError("RedisStorage used before open().")
        return self._client

    async def open(self) -> None:
        if self._client is None:
            self._client = aioredis.Redis.from_url(
                self.redis_url, decode_responses=True, socket_connect_timeout=1
            )
        try:
            await self._client.ping()
        except RedisError as e:
            raise StorageError(f"Could not connect to Redis at {self.redis_url}: {e}") from e
        logger.info(f"✅ RedisStorage connected (prefix={self.key_prefix!r}).")

    async def close(self) -> None:
        if self._client is None:
            return
        try:
            await self._client.aclose()
        except RedisError as e:
            raise StorageError(f"Error closing Redis connection: {e}") from e
        finally:
            self._client = None
        logger.info("🔌 RedisStorage connection closed.")

    async def get(self, key: str) -> str:
        try:
            value = await self.client.get(self._key(key))
        except RedisError as e:
            raise StorageError(f"Redis GET {key!r} failed: {e}") from e
        if value is None:
            raise KeyNotFoundError(key)
        return value

    async def put(self, key: str, value: str) -> None:
        try:
            await self.client.set(self._key(key), value)
        except RedisError as e:
            raise StorageError(f"Redis SET {key!r} failed: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            await self.client.delete(self._key(key))
        except RedisError as e:
            raise StorageError(f"Redis DEL {key!r} failed: {e}") from e

    async def scan(self) -> AsyncIterator[Tuple[str, str]]:
        try:
            async for full_key in self.client.scan_iter(match=f"{self.key_prefix}*"):
                value = await self.client.get(full_key)
                if value is not None:
                    yield full_key[len(self.key_prefix):], value
        except RedisError as e:
            raise StorageError(f"Redis SCAN failed: {e}") from e
