"""
Redis Cache Module

Optional caching layer for analyzer payloads:
- Connection pooling
- JSON serialization
- TTL management
- Tenant-scoped keys built from (tenant, analyzer, window, params)
"""

import hashlib
import json
from typing import Any, Mapping, Optional

import structlog
from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from src.analytics.windows import TimeWindow
from src.config import get_settings

logger = structlog.get_logger(__name__)

# Global Redis connection
_redis_pool: Optional[ConnectionPool] = None
_redis_client: Optional[Redis] = None


async def init_redis() -> Redis:
    """Initialize Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client is not None:
        return _redis_client

    settings = get_settings()
    _redis_pool = ConnectionPool.from_url(
        settings.redis.get_url(),
        max_connections=settings.redis.max_connections,
        socket_timeout=settings.redis.socket_timeout,
        decode_responses=settings.redis.decode_responses,
    )
    _redis_client = Redis(connection_pool=_redis_pool)

    try:
        await _redis_client.ping()
        logger.info("Redis connection established", host=settings.redis.host, port=settings.redis.port)
    except Exception as e:
        logger.error("Redis connection failed", error=str(e), error_type=type(e).__name__)
        await close_redis()
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


def redis_available() -> bool:
    return _redis_client is not None


async def check_redis_health() -> dict:
    if _redis_client is None:
        return {"status": "disabled"}
    try:
        await _redis_client.ping()
        return {"status": "healthy"}
    except Exception as e:
        logger.error("Redis health check failed", error=str(e))
        return {"status": "unhealthy", "error": str(e)}


async def cache_get(key: str) -> Optional[Any]:
    """
    Get value from cache.

    Returns:
        Decoded value or None if not found
    """
    value = await get_redis().get(key)
    if value is None:
        return None

    try:
        return json.loads(value)
    except json.JSONDecodeError:
        logger.warning("Discarding undecodable cache entry", key=key)
        return None


async def cache_set(key: str, value: Any, ttl: int) -> bool:
    """
    Set value in cache.

    Args:
        key: Cache key
        value: Value to cache (JSON serialized)
        ttl: Time-to-live in seconds

    Returns:
        True if stored
    """
    try:
        serialized = json.dumps(value, default=str)
    except (TypeError, ValueError) as e:
        logger.warning("Failed to serialize value for cache", key=key, error=str(e))
        return False

    await get_redis().setex(key, ttl, serialized)
    return True


def analytics_key(
    tenant_id: str,
    analyzer: str,
    window: Optional[TimeWindow],
    params: Optional[Mapping[str, Any]] = None,
) -> str:
    """
    Key for one analyzer payload.

    The tenant id leads the key; params are hashed to keep keys short.
    """
    window_part = window.cache_key() if window else "all"
    params_part = ""
    if params:
        encoded = json.dumps(dict(params), sort_keys=True, default=str)
        params_part = hashlib.sha1(encoded.encode()).hexdigest()[:16]
    return f"{tenant_id}:{analyzer}:{window_part}:{params_part}"


class CacheManager:
    """
    Cache manager with namespace support.

    Example:
        cache = CacheManager("analytics")
        await cache.set("tenant:store:...", payload, ttl=300)
        payload = await cache.get("tenant:store:...")
    """

    def __init__(self, namespace: str, default_ttl: int = 300):
        self.namespace = namespace
        self.default_ttl = default_ttl

    def _key(self, key: str) -> str:
        """Generate namespaced key"""
        return f"{self.namespace}:{key}"

    @property
    def enabled(self) -> bool:
        return get_settings().analytics.cache_enabled and redis_available()

    async def get(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        try:
            return await cache_get(self._key(key))
        except RedisError as e:
            logger.warning("Cache read failed", key=key, error=str(e))
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        if not self.enabled:
            return False
        try:
            return await cache_set(self._key(key), value, ttl or self.default_ttl)
        except RedisError as e:
            logger.warning("Cache write failed", key=key, error=str(e))
            return False


analytics_cache = CacheManager("analytics", default_ttl=get_settings().analytics.cache_ttl_seconds)
