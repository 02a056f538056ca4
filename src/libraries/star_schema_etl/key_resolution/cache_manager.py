"""
Cache management for dimensional key resolution.
"""

from typing import Any, Dict, Optional
import logging
import time

logger = logging.getLogger(__name__)


class CacheManager:
    """Caches dimension lookup indexes with a time-to-live."""

    def __init__(self, enable_caching: bool = True, cache_ttl_minutes: int = 60):
        """
        Initialize CacheManager.

        Args:
            enable_caching: Whether lookups are cached at all
            cache_ttl_minutes: Minutes before a cached lookup is rebuilt
        """
        self.enable_caching = enable_caching
        self.cache_ttl_minutes = cache_ttl_minutes
        self.cache: Dict[str, Any] = {}
        self.cache_timestamps: Dict[str, float] = {}

        logger.info(f"Initialized CacheManager with TTL: {cache_ttl_minutes} minutes")

    def get_cached_records(self, cache_key: str) -> Optional[Any]:
        """
        Get a cached lookup.

        Args:
            cache_key: Cache key for the lookup

        Returns:
            Cached lookup or None if not found/expired
        """
        if not self.enable_caching:
            return None

        if cache_key not in self.cache:
            return None

        # Check if cache has expired
        if self._is_cache_expired(cache_key):
            logger.info(f"Cache expired for key: {cache_key}")
            self._remove_from_cache(cache_key)
            return None

        logger.debug(f"Retrieved cached records for key: {cache_key}")
        return self.cache[cache_key]

    def cache_records(self, records: Any, cache_key: str) -> None:
        """
        Cache a lookup.

        Args:
            records: Lookup to cache
            cache_key: Cache key for the lookup
        """
        if not self.enable_caching:
            return

        self.cache[cache_key] = records
        self.cache_timestamps[cache_key] = time.time()
        logger.info(f"Cached {len(records)} records for key: {cache_key}")

    def _is_cache_expired(self, cache_key: str) -> bool:
        """
        Check if cache has expired.

        Args:
            cache_key: Cache key

        Returns:
            True if cache has expired, False otherwise
        """
        if cache_key not in self.cache_timestamps:
            return True

        cache_time = self.cache_timestamps[cache_key]
        ttl_seconds = self.cache_ttl_minutes * 60

        return (time.time() - cache_time) > ttl_seconds

    def _remove_from_cache(self, cache_key: str) -> None:
        """
        Remove entry from cache.

        Args:
            cache_key: Cache key to remove
        """
        if cache_key in self.cache:
            del self.cache[cache_key]
            del self.cache_timestamps[cache_key]
            logger.debug(f"Removed cache entry for key: {cache_key}")

    def clear_cache(self) -> None:
        """Clear all cached entries."""
        for cache_key in list(self.cache.keys()):
            self._remove_from_cache(cache_key)

        logger.info("Cleared all cache entries")

    def get_cache_stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with cache statistics
        """
        active_entries = 0
        expired_entries = 0

        for cache_key in self.cache_timestamps:
            if self._is_cache_expired(cache_key):
                expired_entries += 1
            else:
                active_entries += 1

        return {
            "total_entries": len(self.cache),
            "active_entries": active_entries,
            "expired_entries": expired_entries,
            "cache_enabled": self.enable_caching,
            "ttl_minutes": self.cache_ttl_minutes
        }
