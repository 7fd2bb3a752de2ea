"""
Storage Module - Key-value backends for cart persistence

Provides:
- Upstash Redis client (singleton) for durable carts
- InMemoryStore for hosts without Redis (one process, one tab)
- StorageKeys: key layout shared by every backend
"""

import os
import time
from typing import Optional, Protocol

from upstash_redis.asyncio import Redis as AsyncRedis

# Upstash Redis - standard env var names per docs
UPSTASH_REDIS_REST_URL = os.environ.get("UPSTASH_REDIS_REST_URL", "")
UPSTASH_REDIS_REST_TOKEN = os.environ.get("UPSTASH_REDIS_REST_TOKEN", "")

# Singleton instance
_redis_client: Optional[AsyncRedis] = None


class KeyValueStore(Protocol):
    """Async key-value contract the cart storage adapter relies on."""

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ex: Optional[int] = None): ...

    async def delete(self, *keys: str) -> int: ...


def get_redis() -> AsyncRedis:
    """
    Get async Upstash Redis client (singleton).

    Raises:
        ValueError: If UPSTASH_REDIS_REST_URL / UPSTASH_REDIS_REST_TOKEN are not set
    """
    global _redis_client

    if _redis_client is None:
        if not UPSTASH_REDIS_REST_URL or not UPSTASH_REDIS_REST_TOKEN:
            raise ValueError("UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set")
        _redis_client = AsyncRedis(url=UPSTASH_REDIS_REST_URL, token=UPSTASH_REDIS_REST_TOKEN)

    return _redis_client


class InMemoryStore:
    """
    Process-local key-value store with optional per-key expiry.

    Mirrors the subset of the Redis API used for carts.
    """

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._data: dict[str, str] = {}
        self._expires: dict[str, float] = {}

    def _expired(self, key: str) -> bool:
        deadline = self._expires.get(key)
        if deadline is not None and deadline <= self._clock():
            self._data.pop(key, None)
            self._expires.pop(key, None)
            return True
        return False

    async def get(self, key: str) -> Optional[str]:
        if self._expired(key):
            return None
        return self._data.get(key)

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        self._data[key] = value
        if ex:
            self._expires[key] = self._clock() + ex
        else:
            self._expires.pop(key, None)
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            self._expires.pop(key, None)
            if self._data.pop(key, None) is not None:
                removed += 1
        return removed

    def keys(self) -> list[str]:
        """Live keys (expired ones dropped)."""
        return [key for key in list(self._data) if not self._expired(key)]


class StorageKeys:
    """Key layout: <namespace>_<store_id>_<CART|PUBLIC|PRIVATE>."""

    @staticmethod
    def cart_key(namespace: str, store_id: str, partition: str) -> str:
        return f"{namespace}_{store_id}_{partition}"
