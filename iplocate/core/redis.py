# iplocate/core/redis.py
# Redis connection for the lookup record store
#
# One connection pool per worker process, opened on first use by the
# record / compensate activities and closed when the worker shuts down.
# Concurrent activities share the pool; only one of them opens it.

import asyncio
from typing import Optional

import redis.asyncio as redis

from iplocate.core.config import settings


class RedisClient:
    """Lazily connected async Redis client"""

    def __init__(self, url: Optional[str] = None):
        self._url = url or settings.REDIS_URL
        self._client: Optional[redis.Redis] = None
        self._connect_lock = asyncio.Lock()

    async def connect(self) -> None:
        """Open the pool; it is kept only if PING succeeds"""
        client = redis.from_url(
            self._url,
            encoding="utf-8",
            decode_responses=True,
        )
        try:
            await client.ping()
        except Exception:
            await client.aclose()
            raise
        self._client = client

    async def disconnect(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            raise RuntimeError("Redis client not connected. Call connect() first.")
        return self._client

    async def ensure_connected(self) -> redis.Redis:
        """Connect on first use; concurrent callers wait for one connect()"""
        if self._client is None:
            async with self._connect_lock:
                if self._client is None:
                    await self.connect()
        return self.client

    async def set(
        self,
        key: str,
        value: str,
        ex: Optional[int] = None,
        nx: bool = False,
    ) -> bool:
        return await self.client.set(key, value, ex=ex, nx=nx)

    async def delete(self, key: str) -> int:
        return await self.client.delete(key)


# Shared by the lookup record activities
redis_client = RedisClient()
