"""
Main dimensional key resolver for fact tables.
"""

from datetime import date
from typing import Any, Dict, Hashable, Optional
import logging

from ..common.config import DimensionConfig, ResolutionMode
from ..storage.base import DimensionStore
from .cache_manager import CacheManager
from .lookup_manager import LookupManager

logger = logging.getLogger(__name__)


class DimensionalKeyResolver:
    """
    Resolves business keys of one dimension to versions.

    ``as_of_load`` attaches facts to the version current when the load runs;
    ``as_of_transaction`` attaches them to the version valid on the
    transaction date.
    """

    def __init__(self, config: DimensionConfig, store: DimensionStore,
                 resolution_mode: str = ResolutionMode.AS_OF_LOAD.value,
                 cache_manager: Optional[CacheManager] = None):
        """
        Initialize DimensionalKeyResolver with configuration and store.

        Args:
            config: Dimension configuration
            store: Store owning the dimension's versions
            resolution_mode: ``as_of_load`` or ``as_of_transaction``
            cache_manager: Shared lookup cache (a private one is created if omitted)
        """
        self.config = config
        self.store = store
        self.resolution_mode = ResolutionMode(resolution_mode)

        # Initialize components
        self.lookup_manager = LookupManager(config, store)
        self.cache_manager = cache_manager or CacheManager()
        self.attempted = 0
        self.resolved = 0

        logger.info(f"Initialized DimensionalKeyResolver for dimension: {config.name} "
                    f"({self.resolution_mode.value})")

    def resolve(self, business_key: Hashable, business_date: date):
        """
        Resolve one business key.

        Args:
            business_key: Natural key carried by the fact line
            business_date: Transaction date of the fact line

        Returns:
            The matching DimensionVersion, or None when unresolved
        """
        self.attempted += 1

        if self.resolution_mode is ResolutionMode.AS_OF_LOAD:
            version = self.lookup_manager.resolve_current_key(business_key, self._current_lookup())
        else:
            version = self.lookup_manager.resolve_historical_key(business_key, business_date,
                                                                 self._history_lookup())

        if version is not None:
            self.resolved += 1
        return version

    def _current_lookup(self):
        cache_key = f"{self.config.name}:current"
        lookup = self.cache_manager.get_cached_records(cache_key)
        if lookup is None:
            lookup = self.lookup_manager.get_current_dimension_records()
            self.cache_manager.cache_records(lookup, cache_key)
        return lookup

    def _history_lookup(self):
        cache_key = f"{self.config.name}:history"
        lookup = self.cache_manager.get_cached_records(cache_key)
        if lookup is None:
            lookup = self.lookup_manager.get_historical_dimension_records()
            self.cache_manager.cache_records(lookup, cache_key)
        return lookup

    def get_resolution_stats(self) -> Dict[str, Any]:
        """
        Get key resolution statistics.

        Returns:
            Dictionary with resolution statistics
        """
        return {
            "dimension": self.config.name,
            "resolution_mode": self.resolution_mode.value,
            "resolution_stats": self.lookup_manager.validate_resolution_results(self.attempted, self.resolved),
            "cache_stats": self.cache_manager.get_cache_stats()
        }

    def clear_cache(self) -> None:
        """Clear all cached data."""
        self.cache_manager.clear_cache()
        logger.info("Cleared key resolution cache")
