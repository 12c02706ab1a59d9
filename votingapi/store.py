"""
Document stores: one JSON string per key.

The repositories only need get / set / set-if-absent / delete / prefix
listing, so both backends expose exactly that.
"""
import asyncio
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from .errors import StoreError

log = structlog.get_logger(__name__)


class DocumentStore(ABC):
    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Raw document under ``key``, or None when absent."""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Unconditional overwrite."""

    @abstractmethod
    async def set_if_absent(self, key: str, value: str) -> bool:
        """Atomically write ``value`` only if ``key`` is free. True if written."""

    @abstractmethod
    async def delete(self, key: str) -> int:
        """Number of keys removed (0 or 1)."""

    @abstractmethod
    async def keys(self, prefix: str) -> List[str]:
        """All keys starting with ``prefix``. Not a consistent snapshot."""

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class MemoryStore(DocumentStore):
    """Dict-backed store for tests and single-process runs."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            self._data[key] = value

    async def set_if_absent(self, key: str, value: str) -> bool:
        async with self._lock:
            if key in self._data:
                return False
            self._data[key] = value
            return True

    async def delete(self, key: str) -> int:
        async with self._lock:
            return 1 if self._data.pop(key, None) is not None else 0

    async def keys(self, prefix: str) -> List[str]:
        return [k for k in list(self._data) if k.startswith(prefix)]


class RedisStore(DocumentStore):
    def __init__(self, client: "aioredis.Redis", scan_count: int = 100) -> None:
        self._client = client
        self._scan_count = scan_count

    @classmethod
    def from_url(cls, url: str) -> "RedisStore":
        if "://" not in url:
            # bare host:port, as the cache flag has always been given
            url = f"redis://{url}"
        return cls(aioredis.Redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._client.get(key)
        except RedisError as exc:
            raise StoreError(f"GET {key} failed: {exc}") from exc

    async def set(self, key: str, value: str) -> None:
        try:
            await self._client.set(key, value)
        except RedisError as exc:
            raise StoreError(f"SET {key} failed: {exc}") from exc

    async def set_if_absent(self, key: str, value: str) -> bool:
        try:
            return bool(await self._client.set(key, value, nx=True))
        except RedisError as exc:
            raise StoreError(f"SET NX {key} failed: {exc}") from exc

    async def delete(self, key: str) -> int:
        try:
            return int(await self._client.delete(key))
        except RedisError as exc:
            raise StoreError(f"DEL {key} failed: {exc}") from exc

    async def keys(self, prefix: str) -> List[str]:
        try:
            return [
                key
                async for key in self._client.scan_iter(
                    match=f"{prefix}*", count=self._scan_count
                )
            ]
        except RedisError as exc:
            raise StoreError(f"SCAN {prefix}* failed: {exc}") from exc

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as exc:
            log.error("store_unreachable", error=str(exc))
            return False

    async def close(self) -> None:
        await self._client.aclose()


def build_store(cache_url: str) -> DocumentStore:
    if not cache_url:
        return MemoryStore()
    return RedisStore.from_url(cache_url)
