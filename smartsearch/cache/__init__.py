"""
Cache module for smart search
Redis-backed caching of query interpretations and business context
"""

from .manager import CacheManager
from .config import CacheConfig, get_redis_client

__all__ = [
    'CacheManager',
    'CacheConfig',
    'get_redis_client'
]
