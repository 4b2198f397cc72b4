"""
Cache Service for product listings.

Product listings fan out over every category partition, so they are cached
for PRODUCT_CACHE_TTL seconds and dropped on every catalog write.

Supports:
1. Redis (preferred for production, shared across workers)
2. In-memory fallback (for development/testing)

Usage:
    cache = get_cache()

    products = await cache.get_product_list({"category": "ATOM_BOMB"})
    if products is None:
        products = ...
        await cache.set_product_list({"category": "ATOM_BOMB"}, products)

    # After adding, editing, deleting or repricing products
    await cache.invalidate_products()
"""
import json
import hashlib
from typing import Any, Optional, Dict
from datetime import datetime, timedelta, timezone
from abc import ABC, abstractmethod
import asyncio
import logging

import redis.asyncio as redis

from app.config import settings

logger = logging.getLogger(__name__)


class CacheBackend(ABC):
    """Abstract cache backend interface."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """Set value in cache with TTL (seconds)."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key from cache."""
        pass

    @abstractmethod
    async def clear_pattern(self, pattern: str) -> int:
        """Clear all keys matching pattern."""
        pass


class InMemoryCache(CacheBackend):
    """
    In-memory cache for development/fallback.

    Note: with several server processes each keeps its own copy, so an
    invalidation in one process does not reach the others. Prefer Redis.
    """

    def __init__(self):
        self._cache: Dict[str, tuple[Any, datetime]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            if key in self._cache:
                value, expires_at = self._cache[key]
                if expires_at > datetime.now(timezone.utc):
                    return value
                else:
                    del self._cache[key]
            return None

    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        async with self._lock:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl)
            self._cache[key] = (value, expires_at)
            return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            if key in self._cache:
                del self._cache[key]
                return True
            return False

    async def clear_pattern(self, pattern: str) -> int:
        """Clear keys matching pattern (simple prefix match)."""
        async with self._lock:
            prefix = pattern.rstrip('*')
            keys_to_delete = [k for k in self._cache.keys() if k.startswith(prefix)]
            for key in keys_to_delete:
                del self._cache[key]
            return len(keys_to_delete)


class RedisCache(CacheBackend):
    """
    Redis cache backend for production.

    Redis being unreachable degrades to cache misses; it never fails a request.
    """

    def __init__(self, redis_url: str):
        self._redis_url = redis_url
        self._client: Optional[redis.Redis] = None

    def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(self._redis_url, decode_responses=True)
        return self._client

    async def get(self, key: str) -> Optional[Any]:
        try:
            value = await self._get_client().get(key)
            if value:
                return json.loads(value)
            return None
        except redis.RedisError as e:
            logger.warning(f"Redis GET {key} failed: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        try:
            await self._get_client().set(key, json.dumps(value), ex=ttl)
            return True
        except redis.RedisError as e:
            logger.warning(f"Redis SET {key} failed: {e}")
            return False

    async def delete(self, key: str) -> bool:
        try:
            await self._get_client().delete(key)
            return True
        except redis.RedisError as e:
            logger.warning(f"Redis DEL {key} failed: {e}")
            return False

    async def clear_pattern(self, pattern: str) -> int:
        try:
            client = self._get_client()
            cursor = 0
            deleted = 0
            while True:
                cursor, keys = await client.scan(cursor, match=pattern, count=100)
                if keys:
                    await client.delete(*keys)
                    deleted += len(keys)
                if cursor == 0:
                    break
            return deleted
        except redis.RedisError as e:
            logger.warning(f"Redis clear {pattern} failed: {e}")
            return 0


class CacheService:
    """
    Namespaced cache with helpers for the storefront's listings.

    Cache keys follow the format:

        {namespace}:{resource_type}:{identifier}

    Examples:
        storefront:products:list:3f2a9c1b0d4e
        storefront:categories:all
    """

    def __init__(self, backend: CacheBackend, namespace: str = "storefront"):
        self._backend = backend
        self._namespace = namespace

    def _make_key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        return await self._backend.get(self._make_key(key))

    async def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        return await self._backend.set(self._make_key(key), value, ttl)

    async def delete(self, key: str) -> bool:
        return await self._backend.delete(self._make_key(key))

    async def clear_pattern(self, pattern: str) -> int:
        return await self._backend.clear_pattern(self._make_key(pattern))

    # ==================== Product Cache ====================

    def _product_list_key(self, params_hash: str) -> str:
        return f"products:list:{params_hash}"

    @staticmethod
    def hash_params(params: dict) -> str:
        """Create hash from query parameters."""
        sorted_params = sorted(params.items())
        param_str = json.dumps(sorted_params, sort_keys=True)
        return hashlib.md5(param_str.encode()).hexdigest()[:12]

    async def get_product_list(self, params: dict) -> Optional[list]:
        """Get a cached product listing (JSON-ready dicts)."""
        return await self.get(self._product_list_key(self.hash_params(params)))

    async def set_product_list(
        self,
        params: dict,
        data: list,
        ttl: Optional[int] = None
    ) -> bool:
        ttl = ttl or settings.PRODUCT_CACHE_TTL
        return await self.set(self._product_list_key(self.hash_params(params)), data, ttl)

    async def invalidate_products(self) -> int:
        """Drop every cached product listing."""
        count = await self.clear_pattern("products:*")
        if count:
            logger.info(f"Invalidated {count} cached product listings")
        return count

    # ==================== Category Cache ====================

    async def get_categories(self, include_inactive: bool = False) -> Optional[list]:
        return await self.get(f"categories:{'all' if include_inactive else 'active'}")

    async def set_categories(
        self,
        data: list,
        include_inactive: bool = False,
        ttl: int = 3600
    ) -> bool:
        return await self.set(
            f"categories:{'all' if include_inactive else 'active'}", data, ttl
        )

    async def invalidate_categories(self) -> int:
        return await self.clear_pattern("categories:*")


# Singleton cache instance
_cache_instance: Optional[CacheService] = None


def get_cache() -> CacheService:
    """Get the cache service singleton."""
    global _cache_instance

    if _cache_instance is None:
        if settings.REDIS_URL and settings.CACHE_ENABLED:
            backend = RedisCache(settings.REDIS_URL)
            logger.info("Cache initialized with Redis backend")
        else:
            backend = InMemoryCache()
            logger.info("Cache initialized with in-memory backend")

        _cache_instance = CacheService(backend)

    return _cache_instance
