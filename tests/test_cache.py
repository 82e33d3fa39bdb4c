"""
Unit tests for Redis cache manager
"""
import pytest
import json
from unittest.mock import Mock, patch
from smartsearch.cache import config as cache_config
from smartsearch.cache.manager import CacheManager
from smartsearch.cache.config import CacheConfig


class TestCacheConfig:
    """Test cache configuration"""

    def test_get_ttl_for_key_type(self):
        """Test TTL retrieval by key type"""
        assert CacheConfig.get_ttl_for_key_type("interpretation") == CacheConfig.INTERPRETATION_TTL
        assert CacheConfig.get_ttl_for_key_type("context") == CacheConfig.CONTEXT_TTL
        assert CacheConfig.get_ttl_for_key_type("unknown") == CacheConfig.DEFAULT_TTL

    def test_get_key_prefix(self):
        """Test key prefix retrieval by type"""
        assert CacheConfig.get_key_prefix("interpretation") == "interpretation:"
        assert CacheConfig.get_key_prefix("context") == "context:"
        assert CacheConfig.get_key_prefix("unknown") == ""

    def test_redis_client_unavailable(self):
        """Unreachable Redis disables caching instead of failing"""
        broken = Mock()
        broken.ping.side_effect = ConnectionError("refused")

        with patch.object(cache_config, "_redis_checked", False), \
                patch.object(cache_config, "_redis_client", None), \
                patch.object(cache_config.redis, "from_url", return_value=broken):
            assert cache_config.get_redis_client() is None


class TestCacheManager:
    """Test cache manager functionality"""

    @pytest.fixture
    def mock_redis(self):
        """Mock Redis client"""
        mock_client = Mock()
        mock_client.ping.return_value = True
        mock_client.setex.return_value = True
        mock_client.get.return_value = None
        mock_client.delete.return_value = 1
        mock_client.keys.return_value = []
        mock_client.info.return_value = {
            "connected_clients": 1,
            "used_memory_human": "1M"
        }
        return mock_client

    @pytest.fixture
    def cache_manager(self, mock_redis):
        """Cache manager with mock Redis"""
        return CacheManager(mock_redis)

    @pytest.fixture
    def disabled_cache_manager(self):
        """Cache manager without Redis (disabled)"""
        return CacheManager(None)

    def test_initialization(self, mock_redis):
        """Test cache manager initialization with and without Redis"""
        assert CacheManager(mock_redis).enabled is True
        assert CacheManager(None).enabled is False

    def test_interpretation_key_ignores_order_and_case(self, cache_manager):
        """Same request content produces the same key"""
        first = cache_manager.interpretation_key("People at Blackstone ", ["B", "A"], ["LinkedIn"])
        second = cache_manager.interpretation_key("people at blackstone", ["A", "B"], ["LinkedIn"])
        other = cache_manager.interpretation_key("people at apollo", ["A", "B"], ["LinkedIn"])

        assert first == second
        assert first != other
        assert len(first) == 32  # MD5 hash length

    def test_cache_interpretation(self, cache_manager, mock_redis):
        """Interpretations are stored as JSON with the interpretation TTL"""
        payload = {"intents": [{"type": "company", "label": "Company: Blackstone"}]}

        assert cache_manager.cache_interpretation("abc", payload) is True
        mock_redis.setex.assert_called_once_with(
            "interpretation:abc", CacheConfig.INTERPRETATION_TTL, json.dumps(payload)
        )

    def test_get_cached_interpretation(self, cache_manager, mock_redis):
        """Cached interpretations are deserialized"""
        payload = {"intents": [], "filters": None}
        mock_redis.get.return_value = json.dumps(payload)

        assert cache_manager.get_cached_interpretation("abc") == payload
        mock_redis.get.assert_called_with("interpretation:abc")

    def test_get_cached_interpretation_miss(self, cache_manager, mock_redis):
        assert cache_manager.get_cached_interpretation("abc") is None

    def test_redis_errors_are_contained(self, cache_manager, mock_redis):
        """Redis failures degrade to cache misses"""
        mock_redis.get.side_effect = Exception("connection lost")
        mock_redis.setex.side_effect = Exception("connection lost")

        assert cache_manager.get_cached_interpretation("abc") is None
        assert cache_manager.cache_interpretation("abc", {}) is False

    def test_context_cache(self, cache_manager, mock_redis):
        """Business context uses its own prefix and TTL"""
        cache_manager.cache_context("deals", [{"id": 1}])
        mock_redis.setex.assert_called_once_with("context:deals", CacheConfig.CONTEXT_TTL, '[{"id": 1}]')

    def test_undecodable_entry_is_a_miss(self, cache_manager, mock_redis):
        """Entries that are not JSON are treated as cache misses"""
        mock_redis.get.return_value = "not json"

        assert cache_manager.get_cached_context("deals") is None

    def test_disabled_cache(self, disabled_cache_manager):
        """Disabled cache never stores or returns data"""
        assert disabled_cache_manager.cache_interpretation("abc", {}) is False
        assert disabled_cache_manager.get_cached_interpretation("abc") is None
        assert disabled_cache_manager.get_cached_context("deals") is None
        assert disabled_cache_manager.cache_context("deals", []) is False

    def test_health_check(self, cache_manager, mock_redis, disabled_cache_manager):
        mock_redis.get.return_value = "test"

        assert cache_manager.health_check()["status"] == "healthy"
        assert disabled_cache_manager.health_check() == {"status": "disabled", "redis_available": False}
