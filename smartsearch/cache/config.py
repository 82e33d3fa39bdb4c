"""
Cache configuration settings
"""
import os
import logging
from typing import Optional

import redis

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None
_redis_checked = False


def get_redis_client() -> Optional[redis.Redis]:
    """Get Redis client instance, or None when Redis is unreachable"""
    global _redis_client, _redis_checked
    if _redis_checked:
        return _redis_client

    _redis_checked = True
    try:
        client = redis.from_url(
            CacheConfig.REDIS_URL,
            max_connections=CacheConfig.REDIS_MAX_CONNECTIONS,
            decode_responses=True
        )
        # Test connection
        client.ping()
        _redis_client = client
        logger.info("Redis connection established successfully")
    except Exception as e:
        logger.warning(f"Redis connection failed: {e}. Cache will be disabled.")
        _redis_client = None
    return _redis_client


class CacheConfig:
    """Configuration class for cache settings"""

    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    REDIS_MAX_CONNECTIONS = int(os.getenv("REDIS_MAX_CONNECTIONS", "20"))

    # Default TTL values (in seconds)
    DEFAULT_TTL = int(os.getenv("CACHE_DEFAULT_TTL", "3600"))  # 1 hour
    INTERPRETATION_TTL = int(os.getenv("INTERPRETATION_CACHE_TTL", "3600"))  # 1 hour
    CONTEXT_TTL = int(os.getenv("CONTEXT_CACHE_TTL", "300"))  # 5 minutes

    # Cache key prefixes
    INTERPRETATION_PREFIX = "interpretation:"
    CONTEXT_PREFIX = "context:"

    @classmethod
    def get_ttl_for_key_type(cls, key_type: str) -> int:
        """Get TTL based on key type"""
        ttl_map = {
            "interpretation": cls.INTERPRETATION_TTL,
            "context": cls.CONTEXT_TTL,
        }
        return ttl_map.get(key_type, cls.DEFAULT_TTL)

    @classmethod
    def get_key_prefix(cls, key_type: str) -> str:
        """Get key prefix based on type"""
        prefix_map = {
            "interpretation": cls.INTERPRETATION_PREFIX,
            "context": cls.CONTEXT_PREFIX,
        }
        return prefix_map.get(key_type, "")
