"""
Lookup management for dimensional key resolution.
"""

from datetime import date
from typing import Any, Dict, Hashable, List, Optional
import logging

from ..common.config import DimensionConfig
from ..common.exceptions import InvariantViolation
from ..common.records import DimensionVersion
from ..storage.base import DimensionStore

logger = logging.getLogger(__name__)


class LookupManager:
    """Builds and probes business key → version lookups for one dimension."""

    def __init__(self, config: DimensionConfig, store: DimensionStore):
        """
        Initialize LookupManager with configuration and store.

        Args:
            config: Dimension configuration
            store: Store owning the dimension's versions
        """
        self.config = config
        self.store = store

        logger.info(f"Initialized LookupManager for dimension: {config.name}")

    def get_current_dimension_records(self) -> Dict[Hashable, DimensionVersion]:
        """
        Build the business key → current version lookup.

        Returns:
            Dictionary with one current version per business key

        Raises:
            InvariantViolation: If a key has several current versions
        """
        lookup = {}
        for business_key, versions in self.store.current_index().items():
            if len(versions) > 1:
                message = (f"Dimension '{self.config.name}' has {len(versions)} current versions "
                           f"for business key {business_key!r}")
                logger.error(message)
                raise InvariantViolation(message, self.config.name, business_key)
            lookup[business_key] = versions[0]

        logger.info(f"Retrieved {len(lookup)} current records from {self.config.target_table}")
        return lookup

    def get_historical_dimension_records(self) -> Dict[Hashable, List[DimensionVersion]]:
        """
        Build the business key → full history lookup for date-based resolution.

        Returns:
            Dictionary of versions per business key, ordered by effective date
        """
        lookup: Dict[Hashable, List[DimensionVersion]] = {}
        for version in self.store.history():
            lookup.setdefault(version.business_key, []).append(version)
        for versions in lookup.values():
            versions.sort(key=lambda v: v.effective_date)

        logger.info(f"Retrieved history of {len(lookup)} business keys from {self.config.target_table}")
        return lookup

    @staticmethod
    def resolve_current_key(business_key: Hashable,
                            current_lookup: Dict[Hashable, DimensionVersion]) -> Optional[DimensionVersion]:
        """Current version of ``business_key``, if any."""
        return current_lookup.get(business_key)

    @staticmethod
    def resolve_historical_key(business_key: Hashable, business_date: date,
                               history_lookup: Dict[Hashable, List[DimensionVersion]]) -> Optional[DimensionVersion]:
        """Version of ``business_key`` whose validity window contains ``business_date``, if any."""
        for version in history_lookup.get(business_key, []):
            if version.covers(business_date):
                return version
        return None

    @staticmethod
    def validate_resolution_results(total: int, resolved: int) -> Dict[str, Any]:
        """
        Summarize how many references were resolved.

        Args:
            total: References attempted
            resolved: References resolved to a version

        Returns:
            Dictionary with resolution statistics
        """
        unresolved = total - resolved
        return {
            "total_records": total,
            "resolved_records": resolved,
            "unresolved_records": unresolved,
            "resolution_rate": resolved / total if total > 0 else 1.0
        }
