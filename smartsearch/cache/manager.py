"""
Redis cache for smart search interpretations and the business context behind them
"""
import json
import hashlib
import logging
from typing import Any, Optional, Dict, Iterable
import redis
from .config import CacheConfig

logger = logging.getLogger(__name__)


class CacheManager:
    """Stores interpretation payloads and CRM context lists as JSON with per-kind TTLs"""

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        self.redis_client = redis_client
        self.config = CacheConfig()
        self.enabled = redis_client is not None

        if not self.enabled:
            logger.warning("Cache manager initialized without Redis client - caching disabled")

    def _store(self, kind: str, identifier: str, data: Any, ttl: Optional[int]) -> bool:
        if not self.enabled:
            return False

        key = f"{self.config.get_key_prefix(kind)}{identifier}"
        ttl = ttl if ttl is not None else self.config.get_ttl_for_key_type(kind)
        try:
            stored = self.redis_client.setex(key, ttl, json.dumps(data, default=str))
        except Exception as e:
            logger.error(f"Cache write failed for {key}: {e}")
            return False

        logger.debug(f"Cached {key} for {ttl}s")
        return bool(stored)

    def _load(self, kind: str, identifier: str) -> Optional[Any]:
        if not self.enabled:
            return None

        key = f"{self.config.get_key_prefix(kind)}{identifier}"
        try:
            raw = self.redis_client.get(key)
        except Exception as e:
            logger.error(f"Cache read failed for {key}: {e}")
            return None

        if raw is None:
            logger.debug(f"Cache miss: {key}")
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning(f"Discarding undecodable cache entry {key}")
            return None

    # Query interpretations
    def interpretation_key(
        self,
        query: str,
        known_organizations: Iterable[str] = (),
        known_sources: Iterable[str] = ()
    ) -> str:
        """Cache identifier for one interpretation request; order of the known names is irrelevant"""
        request = {
            "query": query.strip().lower(),
            "organizations": sorted(known_organizations),
            "sources": sorted(known_sources),
        }
        return hashlib.md5(json.dumps(request, sort_keys=True).encode()).hexdigest()

    def cache_interpretation(self, key: str, interpretation: Dict, ttl: Optional[int] = None) -> bool:
        return self._store("interpretation", key, interpretation, ttl)

    def get_cached_interpretation(self, key: str) -> Optional[Dict]:
        cached = self._load("interpretation", key)
        return cached if isinstance(cached, dict) else None

    # Business context (deals, organizations)
    def cache_context(self, name: str, data: Any, ttl: Optional[int] = None) -> bool:
        return self._store("context", name, data, ttl)

    def get_cached_context(self, name: str) -> Optional[Any]:
        return self._load("context", name)

    def health_check(self) -> Dict[str, Any]:
        """Round-trip a test key and report Redis status for /health"""
        if not self.enabled:
            return {"status": "disabled", "redis_available": False}

        try:
            self.redis_client.setex("health_check_test", 10, "test")
            round_trip = self.redis_client.get("health_check_test")
            info = self.redis_client.info()
        except Exception as e:
            logger.error(f"Cache health check failed: {e}")
            return {"status": "error", "redis_available": False, "error": str(e)}

        return {
            "status": "healthy" if round_trip == "test" else "error",
            "redis_available": True,
            "connected_clients": info.get("connected_clients", 0),
            "used_memory_human": info.get("used_memory_human", "unknown"),
        }
