"""
Redis cache utility for metrics snapshots and study-time state
"""
import redis
import json
import logging
import time
from typing import Optional, Any, Dict, Tuple
from uuid import UUID
from gyaan.config import settings

logger = logging.getLogger(__name__)


class CacheService:
    """
    Redis-based key/value cache with JSON values

    Falls back to an in-process dict when Redis is not configured or
    unreachable, so the tracker keeps working on a single node.
    """

    def __init__(self, url: Optional[str] = None):
        url = settings.REDIS_URL if url is None else url
        # Fallback storage: {key: (expires_at, serialized)}
        self._memory: Dict[str, Tuple[Optional[float], str]] = {}
        self.redis_client = None

        if not url:
            logger.info("Redis not configured. Using in-memory cache.")
            return

        try:
            self.redis_client = redis.from_url(
                url,
                decode_responses=True,
                socket_connect_timeout=5
            )
            # Test connection
            self.redis_client.ping()
            logger.info("Redis connection established")
        except Exception as e:
            logger.warning(f"Redis connection failed: {str(e)}. Using in-memory cache.")
            self.redis_client = None

    def metrics_key(self, user_id: UUID) -> str:
        """Cache key for a user's derived metrics snapshot"""
        return f"metrics:{user_id}"

    def study_time_key(self, user_id: UUID) -> str:
        """Cache key for a user's running study-time total"""
        return f"studyTime:{user_id}"

    def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache

        Args:
            key: Cache key

        Returns:
            Cached value or None
        """
        if not self.redis_client:
            return self._memory_get(key)

        try:
            value = self.redis_client.get(key)
            if value:
                logger.debug(f"Cache hit: {key}")
                return json.loads(value)
            logger.debug(f"Cache miss: {key}")
            return None
        except Exception as e:
            logger.error(f"Cache get error: {str(e)}")
            return None

    def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None
    ) -> bool:
        """
        Set value in cache

        Args:
            key: Cache key
            value: Value to cache (must be JSON serializable)
            ttl: Time to live in seconds (default: no expiry)

        Returns:
            Success status
        """
        try:
            serialized = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.error(f"Cache serialization error for {key}: {str(e)}")
            return False

        if not self.redis_client:
            expires_at = time.monotonic() + ttl if ttl else None
            self._memory[key] = (expires_at, serialized)
            return True

        try:
            if ttl:
                self.redis_client.setex(key, ttl, serialized)
            else:
                self.redis_client.set(key, serialized)
            logger.debug(f"Cache set: {key} (TTL: {ttl}s)")
            return True
        except Exception as e:
            logger.error(f"Cache set error: {str(e)}")
            return False

    def delete(self, key: str) -> bool:
        """Delete key from cache"""
        if not self.redis_client:
            self._memory.pop(key, None)
            return True

        try:
            self.redis_client.delete(key)
            logger.debug(f"Cache delete: {key}")
            return True
        except Exception as e:
            logger.error(f"Cache delete error: {str(e)}")
            return False

    def _memory_get(self, key: str) -> Optional[Any]:
        entry = self._memory.get(key)
        if entry is None:
            return None

        expires_at, serialized = entry
        if expires_at is not None and expires_at <= time.monotonic():
            del self._memory[key]
            return None
        return json.loads(serialized)


# Global instance
cache_service = CacheService()
