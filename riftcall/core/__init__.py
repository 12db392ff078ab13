"""Core utilities: settings, logging, cache store and HTTP client."""

from riftcall.core.cache import (
    CacheBackend,
    CacheBackendType,
    FileCache,
    InMemoryCache,
    RedisCache,
    create_cache,
    register_cache_backend,
)
from riftcall.core.config import settings
from riftcall.core.logging import get_logger, setup_logging

__all__ = [
    "CacheBackend",
    "CacheBackendType",
    "FileCache",
    "InMemoryCache",
    "RedisCache",
    "create_cache",
    "register_cache_backend",
    "settings",
    "get_logger",
    "setup_logging",
]
