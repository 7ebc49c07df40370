# SPDX-License-Identifier: MIT
"""Tests for the cache key-value module."""

import pytest

from matchday_sync.cache import KeyValueCache


@pytest.fixture
def temp_cache(cache_path, fake_clock) -> KeyValueCache:
    """Create a key-value cache on the isolated test database."""
    return KeyValueCache(cache_path, 5.0, clock=fake_clock)


class TestCacheKeyValue:
    """Test cases for KeyValueCache."""

    def test_cache_and_get_value(self, temp_cache):
        temp_cache.set_cached_value(key="test_key", value="test_value", ttl_seconds=60)

        assert temp_cache.get_cached_value(key="test_key") == "test_value"

    def test_get_cached_value_nonexistent(self, temp_cache):
        assert temp_cache.get_cached_value(key="nonexistent_key") is None

    def test_value_expires(self, temp_cache, fake_clock):
        temp_cache.set_cached_value(key="test_key", value="v", ttl_seconds=60)

        fake_clock.advance(60)

        assert temp_cache.get_cached_value(key="test_key") is None

    def test_overwrite_refreshes_value(self, temp_cache):
        temp_cache.set_cached_value(key="k", value="old", ttl_seconds=60)
        temp_cache.set_cached_value(key="k", value="new", ttl_seconds=60)

        assert temp_cache.get_cached_value(key="k") == "new"

    def test_delete_cached_value(self, temp_cache):
        temp_cache.set_cached_value(key="k", value="v", ttl_seconds=60)
        temp_cache.delete_cached_value(key="k")

        assert temp_cache.get_cached_value(key="k") is None

    def test_cleanup_expired(self, temp_cache, fake_clock):
        temp_cache.set_cached_value(key="short", value="v", ttl_seconds=10)
        temp_cache.set_cached_value(key="long", value="v", ttl_seconds=100)
        fake_clock.advance(50)

        assert temp_cache.cleanup_expired() == 1
        assert temp_cache.get_cached_value(key="long") == "v"

    def test_set_cached_value_empty_key_raises_error(self, temp_cache):
        with pytest.raises(ValueError, match="Cache key cannot be empty"):
            temp_cache.set_cached_value(key="   ", value="test_value", ttl_seconds=60)

    def test_set_cached_value_too_long_key_raises_error(self, temp_cache):
        with pytest.raises(ValueError, match="Cache key exceeds maximum length"):
            temp_cache.set_cached_value(key="x" * 256, value="v", ttl_seconds=60)

    def test_set_cached_value_zero_ttl_raises_error(self, temp_cache):
        with pytest.raises(ValueError, match="TTL must be positive"):
            temp_cache.set_cached_value(key="k", value="v", ttl_seconds=0)

    def test_set_cached_value_excessive_ttl_raises_error(self, temp_cache):
        with pytest.raises(ValueError, match="TTL exceeds maximum allowed"):
            temp_cache.set_cached_value(key="k", value="v", ttl_seconds=10**9)
