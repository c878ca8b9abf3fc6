"""
Redis Entity Cache

Memoizes read paths for jobs and applications with a fixed TTL (1 hour by
default) and invalidates them explicitly on every write.

Cache Key Patterns:
    - job:{job_id} - single job
    - application:{application_id} - single application
    - jobs:list:{params_hash} - filtered job listings
    - applications:list:{params_hash} - filtered application listings
    - idx:{namespace} - Redis set holding the live keys of a list namespace

Invalidation:
    Each entity kind declares which list namespaces depend on it in
    INVALIDATION_REGISTRY. List keys are added to their namespace index set
    when written, so invalidating a namespace deletes exactly the registered
    keys. There is no KEYS/SCAN pattern sweep.

    Writes always over-invalidate: an application change clears the
    application key, its job key, and both list namespaces (job listings
    expose application_count).

Degradation:
    Every Redis call is bounded by a timeout. Errors and timeouts are logged
    and reported as a miss, so callers fall through to the database.

Usage:
    cache = await get_cache()

    cached = await cache.get(entity_key(EntityKind.JOB, job_id))
    if cached is None:
        job = await load_job(job_id)
        await cache.set(entity_key(EntityKind.JOB, job_id), job)

    await cache.invalidate_entity(
        EntityKind.APPLICATION, application_id,
        related=[(EntityKind.JOB, job_id)],
    )
"""

import asyncio
import json
import hashlib
import logging
from enum import Enum
from typing import Any, Awaitable, Dict, Iterable, Optional, Tuple

import redis.asyncio as redis

from marketplace.config import get_settings
from marketplace.middleware.metrics import record_cache_hit, record_cache_miss

logger = logging.getLogger(__name__)


class EntityKind(Enum):
    JOB = "job"
    APPLICATION = "application"


JOB_LIST_NAMESPACE = "jobs:list"
APPLICATION_LIST_NAMESPACE = "applications:list"

# Entity kind -> list namespaces that must be dropped when an entity changes
INVALIDATION_REGISTRY: Dict[EntityKind, Tuple[str, ...]] = {
    EntityKind.JOB: (JOB_LIST_NAMESPACE, APPLICATION_LIST_NAMESPACE),
    EntityKind.APPLICATION: (APPLICATION_LIST_NAMESPACE, JOB_LIST_NAMESPACE),
}


def hash_content(*args: Any) -> str:
    """
    Generate a 16-character hex hash from content.

    Dict keys are sorted for consistent hashing.

    Args:
        *args: Content to hash (will be JSON serialized)

    Returns:
        16-character hex string
    """
    content = json.dumps(args, sort_keys=True, default=str)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


def entity_key(kind: EntityKind, entity_id: str) -> str:
    return f"{kind.value}:{entity_id}"


def list_key(namespace: str, params: Dict[str, Any]) -> str:
    return f"{namespace}:{hash_content(params)}"


def index_key(namespace: str) -> str:
    return f"idx:{namespace}"


def _namespace_of(key: str) -> str:
    """Metric label for a key: 'job', 'application', 'jobs:list', ..."""
    head, _, _ = key.rpartition(":")
    return head or key


class EntityCache:
    """
    Redis cache for job and application reads.

    Provides graceful degradation when Redis is unavailable or slow,
    returning None / False instead of raising exceptions.

    Attributes:
        redis: Async Redis client
        default_ttl: TTL applied when set() is called without one
        timeout: Upper bound in seconds for any single Redis call
        stats: Dict tracking hits/misses
    """

    def __init__(
        self,
        redis_url: str,
        default_ttl: int = 3600,
        timeout: float = 0.5,
    ):
        self.redis_url = redis_url
        self.default_ttl = default_ttl
        self.timeout = timeout
        self.redis: Optional[redis.Redis] = None
        self.stats: Dict[str, int] = {"hits": 0, "misses": 0, "errors": 0}

    async def _ensure_connected(self) -> Optional[redis.Redis]:
        """Ensure Redis connection is established."""
        if self.redis is None:
            try:
                self.redis = redis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_timeout=self.timeout,
                    socket_connect_timeout=self.timeout,
                )
            except Exception as e:
                logger.warning(f"Failed to connect to Redis: {e}")
                return None
        return self.redis

    async def _bounded(self, awaitable: Awaitable) -> Any:
        return await asyncio.wait_for(awaitable, timeout=self.timeout)

    # ==================== Reads ====================

    async def get(self, key: str) -> Optional[Any]:
        """
        Get a cached value.

        Args:
            key: Cache key

        Returns:
            Decoded value, or None on miss, error or timeout
        """
        namespace = _namespace_of(key)
        try:
            client = await self._ensure_connected()
            if not client:
                return None

            cached = await self._bounded(client.get(key))

            if cached is not None:
                self.stats["hits"] += 1
                record_cache_hit(namespace)
                return json.loads(cached)

            self.stats["misses"] += 1
            record_cache_miss(namespace)
            return None

        except Exception as e:
            logger.warning(f"Redis get error ({key}): {e!r}")
            self.stats["errors"] += 1
            self.stats["misses"] += 1
            record_cache_miss(namespace)
            return None

    # ==================== Writes ====================

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None,
        namespace: Optional[str] = None,
    ) -> bool:
        """
        Cache a JSON-serializable value.

        Args:
            key: Cache key
            value: Value to store
            ttl: Seconds to live (defaults to default_ttl)
            namespace: List namespace to register the key under, so that
                invalidate_namespace() can find it

        Returns:
            True if cached successfully, False otherwise
        """
        ttl = ttl or self.default_ttl
        try:
            client = await self._ensure_connected()
            if not client:
                return False

            await self._bounded(client.setex(key, ttl, json.dumps(value, default=str)))
            if namespace:
                idx = index_key(namespace)
                await self._bounded(client.sadd(idx, key))
                await self._bounded(client.expire(idx, ttl))
            return True

        except Exception as e:
            logger.warning(f"Redis set error ({key}): {e!r}")
            self.stats["errors"] += 1
            return False

    # ==================== Invalidation ====================

    async def invalidate(self, key: str) -> bool:
        """
        Delete a single key.

        Returns:
            True if the key existed and was deleted
        """
        try:
            client = await self._ensure_connected()
            if not client:
                return False

            result = await self._bounded(client.delete(key))
            return result > 0

        except Exception as e:
            logger.warning(f"Redis delete error ({key}): {e!r}")
            self.stats["errors"] += 1
            return False

    async def invalidate_namespace(self, namespace: str) -> int:
        """
        Delete every key registered under a list namespace.

        Only the members read here are removed from the index, so a key
        registered while the delete is in flight stays indexed for the next
        invalidation.

        Returns:
            Number of cached entries deleted
        """
        try:
            client = await self._ensure_connected()
            if not client:
                return 0

            idx = index_key(namespace)
            members = await self._bounded(client.smembers(idx))
            keys = list(members or [])

            if not keys:
                return 0

            deleted = await self._bounded(client.delete(*keys))
            await self._bounded(client.srem(idx, *keys))
            return deleted

        except Exception as e:
            logger.warning(f"Redis namespace delete error ({namespace}): {e!r}")
            self.stats["errors"] += 1
            return 0

    async def invalidate_entity(
        self,
        kind: EntityKind,
        entity_id: str,
        related: Iterable[Tuple[EntityKind, str]] = (),
    ) -> Dict[str, int]:
        """
        Invalidate an entity, related entities and all dependent listings.

        Args:
            kind: Kind of the entity that changed
            entity_id: Its id
            related: Other (kind, id) pairs whose cached view changed too

        Returns:
            Dict with counts of invalidated keys and list entries
        """
        results = {"keys": 0, "list_entries": 0}

        namespaces = list(INVALIDATION_REGISTRY[kind])
        keys = [entity_key(kind, entity_id)]
        for related_kind, related_id in related:
            keys.append(entity_key(related_kind, related_id))
            for namespace in INVALIDATION_REGISTRY[related_kind]:
                if namespace not in namespaces:
                    namespaces.append(namespace)

        for key in keys:
            if await self.invalidate(key):
                results["keys"] += 1

        for namespace in namespaces:
            results["list_entries"] += await self.invalidate_namespace(namespace)

        return results

    # ==================== Health & Stats ====================

    async def health_check(self) -> bool:
        """
        Check Redis connection health.

        Returns:
            True if Redis is responsive
        """
        try:
            client = await self._ensure_connected()
            if not client:
                return False

            await self._bounded(client.ping())
            return True

        except Exception as e:
            logger.warning(f"Redis health check failed: {e!r}")
            return False

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics including hit rate."""
        hits = self.stats["hits"]
        misses = self.stats["misses"]
        total = hits + misses

        return {
            "hits": hits,
            "misses": misses,
            "errors": self.stats["errors"],
            "total": total,
            "hit_rate": hits / total if total > 0 else 0.0,
        }

    async def close(self) -> None:
        """Close Redis connection."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None


# ==================== Factory Function ====================

_cache_instance: Optional[EntityCache] = None


async def get_cache(redis_url: Optional[str] = None) -> EntityCache:
    """
    Get or create cache singleton.

    Args:
        redis_url: Optional Redis URL (uses settings if not provided)

    Returns:
        EntityCache instance
    """
    global _cache_instance

    if _cache_instance is None:
        settings = get_settings()
        _cache_instance = EntityCache(
            redis_url=redis_url or settings.redis_url,
            default_ttl=settings.cache_ttl_seconds,
            timeout=settings.cache_timeout_seconds,
        )

    return _cache_instance
