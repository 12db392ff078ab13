"""Cache store abstraction for the client.

Provides a pluggable cache backend system with in-memory, Redis and file
implementations, selected by a type tag from settings. Besides plain
get/set, every backend supports deferred writes: callers queue several
values with save_deferred() and flush them together with commit().
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict
import asyncio
import base64
import hashlib
import json
import os
import shutil
import time

import redis.asyncio as aioredis

from riftcall.core.config import Settings
from riftcall.core.logging import get_logger
from riftcall.exceptions import SettingsError

logger = get_logger(__name__)


@dataclass
class _CacheEntry:
    """Internal cache entry with TTL tracking."""

    value: bytes
    expires_at: float | None = None

    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return time.time() > self.expires_at


class CacheBackend(ABC):
    """Abstract base class for cache backends.

    All cache implementations must inherit from this class and implement
    the abstract methods. A ttl of zero or less stores without expiry.
    """

    def __init__(self, namespace: str = "") -> None:
        self.namespace = namespace
        self._deferred: list[tuple[str, bytes, int]] = []

    def _key(self, key: str) -> str:
        return f"{self.namespace}.{key}" if self.namespace else key

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Retrieve a value from the cache.

        Args:
            key: The cache key to look up.

        Returns:
            The cached value as bytes, or None if not found or expired.
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: bytes, ttl: int) -> None:
        """Store a value in the cache.

        Args:
            key: The cache key.
            value: The value to store (as bytes).
            ttl: Time-to-live in seconds.
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if a key exists in the cache.

        Returns:
            True if the key exists and is not expired, False otherwise.
        """
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Clear all entries of this namespace from the cache."""
        pass

    def save_deferred(self, key: str, value: bytes, ttl: int) -> None:
        """Queue a write until the next commit().

        A later deferred write to the same key replaces the queued one.
        """
        self._deferred = [item for item in self._deferred if item[0] != key]
        self._deferred.append((key, value, ttl))

    async def commit(self) -> bool:
        """Flush all deferred writes.

        Returns:
            True if every queued write was stored.
        """
        pending, self._deferred = self._deferred, []
        for key, value, ttl in pending:
            await self.set(key, value, ttl)
        return True

    async def close(self) -> None:
        """Release backend resources."""
        return None


class InMemoryCache(CacheBackend):
    """In-memory cache implementation with TTL support.

    Stores all data in a Python dictionary and expires entries based on TTL.

    Note: This cache is not distributed and data is lost when the
    process exits.
    """

    def __init__(self, namespace: str = "") -> None:
        super().__init__(namespace)
        self._data: dict[str, _CacheEntry] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> bytes | None:
        async with self._lock:
            entry = self._data.get(self._key(key))
            if entry is None:
                return None
            if entry.is_expired():
                del self._data[self._key(key)]
                return None
            return entry.value

    async def set(self, key: str, value: bytes, ttl: int) -> None:
        async with self._lock:
            expires_at = time.time() + ttl if ttl > 0 else None
            self._data[self._key(key)] = _CacheEntry(value=value, expires_at=expires_at)

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(self._key(key), None)

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    async def clear(self) -> None:
        async with self._lock:
            self._data.clear()
            self._deferred.clear()

    async def cleanup_expired(self) -> int:
        """Remove all expired entries from the cache.

        Returns:
            Number of entries removed.
        """
        async with self._lock:
            expired_keys = [
                key for key, entry in self._data.items() if entry.is_expired()
            ]
            for key in expired_keys:
                del self._data[key]
            return len(expired_keys)


class RedisCache(CacheBackend):
    """Redis-based cache implementation.

    Deferred writes are flushed in a single pipeline round trip.

    Example:
        >>> cache = RedisCache("redis://localhost:6379/0", namespace="riftcall")
        >>> await cache.set("key", b"value", ttl=300)
    """

    def __init__(self, redis_url: str, namespace: str = "") -> None:
        super().__init__(namespace)
        self._redis_url = redis_url
        self._redis: aioredis.Redis | None = None

    async def _get_client(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = aioredis.from_url(self._redis_url)
        return self._redis

    async def get(self, key: str) -> bytes | None:
        client = await self._get_client()
        return await client.get(self._key(key))

    async def set(self, key: str, value: bytes, ttl: int) -> None:
        client = await self._get_client()
        await client.set(self._key(key), value, ex=ttl if ttl > 0 else None)

    async def delete(self, key: str) -> None:
        client = await self._get_client()
        await client.delete(self._key(key))

    async def exists(self, key: str) -> bool:
        client = await self._get_client()
        return await client.exists(self._key(key)) > 0

    async def clear(self) -> None:
        """Delete every key under this namespace.

        Without a namespace the whole database is flushed.
        """
        self._deferred.clear()
        client = await self._get_client()
        if not self.namespace:
            await client.flushdb()
            return
        keys = [key async for key in client.scan_iter(match=f"{self.namespace}.*")]
        if keys:
            await client.delete(*keys)

    async def commit(self) -> bool:
        pending, self._deferred = self._deferred, []
        if not pending:
            return True
        client = await self._get_client()
        async with client.pipeline(transaction=True) as pipe:
            for key, value, ttl in pending:
                pipe.set(self._key(key), value, ex=ttl if ttl > 0 else None)
            results = await pipe.execute()
        return all(results)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


class FileCache(CacheBackend):
    """File-based cache implementation.

    One file per key under ``directory/namespace``, named by the SHA-256 of
    the key. Each file holds a JSON envelope with the expiry timestamp and
    the base64 value. Writes go to a temporary file first and are moved into
    place with os.replace.
    """

    def __init__(self, directory: Path | str, namespace: str = "") -> None:
        super().__init__(namespace)
        self.directory = Path(directory) / (namespace or "default")
        self._lock = asyncio.Lock()
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        hashed_key = hashlib.sha256(key.encode()).hexdigest()
        return self.directory / hashed_key[:2] / hashed_key

    def _read(self, path: Path) -> _CacheEntry | None:
        try:
            envelope = json.loads(path.read_text(encoding="utf-8"))
            return _CacheEntry(
                value=base64.b64decode(envelope["value"]),
                expires_at=envelope.get("expires_at"),
            )
        except FileNotFoundError:
            return None
        except (ValueError, KeyError, OSError) as e:
            logger.warning(f"Failed to read cache file {path}: {e}. Removing.")
            path.unlink(missing_ok=True)
            return None

    async def get(self, key: str) -> bytes | None:
        path = self._path(key)
        async with self._lock:
            entry = self._read(path)
            if entry is None:
                return None
            if entry.is_expired():
                path.unlink(missing_ok=True)
                return None
            return entry.value

    async def set(self, key: str, value: bytes, ttl: int) -> None:
        path = self._path(key)
        envelope = {
            "key": key,
            "expires_at": time.time() + ttl if ttl > 0 else None,
            "value": base64.b64encode(value).decode("ascii"),
        }
        async with self._lock:
            path.parent.mkdir(parents=True, exist_ok=True)
            temp_path = path.with_suffix(".tmp")
            try:
                temp_path.write_text(json.dumps(envelope), encoding="utf-8")
                os.replace(temp_path, path)
            except OSError:
                temp_path.unlink(missing_ok=True)
                raise

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._path(key).unlink(missing_ok=True)

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    async def clear(self) -> None:
        async with self._lock:
            self._deferred.clear()
            shutil.rmtree(self.directory, ignore_errors=True)
            self.directory.mkdir(parents=True, exist_ok=True)


class CacheBackendType(str, Enum):
    """Built-in cache backend type tags."""
    MEMORY = "memory"
    REDIS = "redis"
    FILE = "file"


CacheFactory = Callable[[Settings], CacheBackend]

# Backend registry mapping type tags to factories
_CACHE_REGISTRY: Dict[str, CacheFactory] = {
    CacheBackendType.MEMORY.value: lambda s: InMemoryCache(namespace=s.cache_namespace),
    CacheBackendType.REDIS.value: lambda s: RedisCache(s.redis_url, namespace=s.cache_namespace),
    CacheBackendType.FILE.value: lambda s: FileCache(s.cache_dir, namespace=s.cache_namespace),
}


def register_cache_backend(tag: str, factory: CacheFactory) -> None:
    """Register a cache backend factory under a type tag.

    Raises:
        SettingsError: If the tag is empty or the factory is not callable.
    """
    if not tag or not callable(factory):
        raise SettingsError(f"Cache backend '{tag}' is not valid.")
    _CACHE_REGISTRY[tag] = factory
    logger.debug(f"Registered cache backend: {tag}")


def available_cache_backends() -> list[str]:
    return sorted(_CACHE_REGISTRY)


def create_cache(tag: str, config: Settings) -> CacheBackend:
    """Build a cache backend for a type tag.

    Raises:
        SettingsError: If no backend is registered under the tag.
    """
    factory = _CACHE_REGISTRY.get(tag)
    if factory is None:
        raise SettingsError(
            f"Value for settings parameter 'cache_provider' ({tag}) is not valid."
        )
    backend = factory(config)
    if not isinstance(backend, CacheBackend):
        raise SettingsError(f"Cache backend '{tag}' is not valid.")
    return backend
