"""
Redis Cache Module

Fingerprint-keyed caching for metric payloads:
- Connection pooling
- JSON serialization
- Keys of the form ``{namespace}:{key}:{fingerprint}`` so any change to the
  underlying rows produces a miss
- Namespace invalidation through an index set of issued keys, pruned of
  superseded fingerprints and expiring with the entries it lists
- Warm status marker
- Degradation to direct computation when Redis is unavailable
"""

import hashlib
import json
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, Optional

import structlog
from redis.asyncio import Redis, ConnectionPool
from redis.exceptions import RedisError

from src.config import get_settings
from src.metrics.records import Order

logger = structlog.get_logger(__name__)
settings = get_settings()

# Global Redis connection
_redis_pool: Optional[ConnectionPool] = None
_redis_client: Optional[Redis] = None

# Backend failures the cache absorbs. RuntimeError covers an uninitialized client.
CACHE_ERRORS = (RedisError, RuntimeError)


async def init_redis() -> Redis:
    """Initialize Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client is not None:
        return _redis_client

    _redis_pool = ConnectionPool.from_url(
        settings.redis.get_url(),
        max_connections=settings.redis.max_connections,
        socket_timeout=settings.redis.socket_timeout,
        decode_responses=settings.redis.decode_responses,
    )

    _redis_client = Redis(connection_pool=_redis_pool)

    try:
        await _redis_client.ping()
        logger.info("Redis connection established")
    except RedisError as e:
        logger.error("Redis connection failed", error=str(e))
        raise

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None

    if _redis_pool:
        await _redis_pool.disconnect()
        _redis_pool = None

    logger.info("Redis connection closed")


def get_redis() -> Redis:
    """Get Redis client instance"""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


class CacheManager:
    """
    Cache manager with namespace support and dataset fingerprints.

    Example:
        cache = CacheManager("metrics", default_ttl=900)
        fingerprint = CacheManager.fingerprint(ids, latest_updated_at)
        payload = await cache.cached("7:all:all", compute, fingerprint)
    """

    INDEX_KEY = "__keys__"
    STATUS_KEY = "_cache_status"

    def __init__(
        self,
        namespace: str,
        default_ttl: int = 900,
        client: Optional[Redis] = None,
        status_ttl: int = 3600,
    ):
        self.namespace = namespace
        self.default_ttl = default_ttl
        self.status_ttl = status_ttl
        self._client = client

    @property
    def client(self) -> Redis:
        return self._client if self._client is not None else get_redis()

    def _key(self, key: str) -> str:
        """Generate namespaced key"""
        return f"{self.namespace}:{key}"

    @property
    def index_key(self) -> str:
        return self._key(self.INDEX_KEY)

    @property
    def status_key(self) -> str:
        return self._key(self.STATUS_KEY)

    def entry_key(self, key: str, fingerprint: str) -> str:
        return self._key(f"{key}:{fingerprint}")

    # -------------------------------------------------------------------------
    # Fingerprints
    # -------------------------------------------------------------------------

    @staticmethod
    def fingerprint(ids: Iterable[Any], latest: Optional[datetime]) -> str:
        """sha256 over the sorted unique ids and the latest mutation time."""
        joined = ",".join(sorted({str(identifier) for identifier in ids}))
        stamp = latest.isoformat() if latest is not None else ""
        return hashlib.sha256(f"{joined}|{stamp}".encode("utf-8")).hexdigest()

    @classmethod
    def fingerprint_orders(cls, orders: Iterable[Order]) -> str:
        ids = []
        latest: Optional[datetime] = None
        for order in orders:
            ids.append(order.identity)
            if order.updated_at is not None and (latest is None or order.updated_at > latest):
                latest = order.updated_at
        return cls.fingerprint(ids, latest)

    # -------------------------------------------------------------------------
    # Raw access
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        value = await self.client.get(self._key(key))
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Set value in cache and record the key in the namespace index"""
        try:
            serialized = json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            logger.warning("Failed to serialize value for cache", key=key, error=str(e))
            return False

        full_key = self._key(key)
        ttl = ttl or self.default_ttl
        client = self.client
        await client.setex(full_key, ttl, serialized)
        await client.sadd(self.index_key, full_key)
        # The index outlives every entry it lists, then expires with them
        await client.expire(self.index_key, max(ttl, self.default_ttl, self.status_ttl))
        return True

    async def prune(self, key: str, keep: str) -> int:
        """Drop entries for ``key`` under any fingerprint other than ``keep``."""
        client = self.client
        prefix = self._key(f"{key}:")
        current = self.entry_key(key, keep)
        stale = [
            member
            for member in await client.smembers(self.index_key)
            if member.startswith(prefix) and member != current and ":" not in member[len(prefix):]
        ]
        if not stale:
            return 0
        await client.delete(*stale)
        await client.srem(self.index_key, *stale)
        logger.debug("Stale cache entries pruned", key=key, entries=len(stale))
        return len(stale)

    # -------------------------------------------------------------------------
    # Fingerprinted compute-through
    # -------------------------------------------------------------------------

    async def cached(
        self,
        key: str,
        compute_fn: Callable[[], Awaitable[Any]],
        fingerprint: str,
        ttl: Optional[int] = None,
    ) -> Any:
        """
        Return the cached value for ``key`` at ``fingerprint`` or compute it.

        Errors raised by ``compute_fn`` propagate. Cache backend errors are
        logged and bypassed.
        """
        entry = f"{key}:{fingerprint}"
        try:
            hit = await self.get(entry)
        except CACHE_ERRORS as e:
            logger.warning("Cache unavailable, computing directly", key=key, error=str(e))
            return await compute_fn()

        if hit is not None:
            logger.debug("Cache hit", key=key)
            return hit

        logger.debug("Cache miss", key=key)
        value = await compute_fn()
        try:
            if await self.set(entry, value, ttl):
                await self.prune(key, fingerprint)
        except CACHE_ERRORS as e:
            logger.warning("Cache write failed", key=key, error=str(e))
        return value

    async def invalidate_all(self) -> int:
        """Delete every key issued under this namespace, including the warm marker."""
        client = self.client
        members = await client.smembers(self.index_key)
        keys = sorted(members) + [self.index_key]
        deleted = await client.delete(*keys)
        logger.info("Cache namespace invalidated", namespace=self.namespace, keys=len(members))
        return int(deleted)

    # -------------------------------------------------------------------------
    # Warm status
    # -------------------------------------------------------------------------

    async def mark_warm(self) -> None:
        status = {
            "status": "warm",
            "warmed_at": datetime.now(timezone.utc).isoformat(),
        }
        await self.set(self.STATUS_KEY, status, self.status_ttl)

    async def _status(self) -> Optional[dict]:
        try:
            status = await self.get(self.STATUS_KEY)
        except CACHE_ERRORS as e:
            logger.warning("Cache status unavailable", error=str(e))
            return None
        return status if isinstance(status, dict) else None

    async def is_warm(self) -> bool:
        status = await self._status()
        return bool(status and status.get("status") == "warm")

    async def last_warmed(self) -> Optional[str]:
        status = await self._status()
        return status.get("warmed_at") if status else None
