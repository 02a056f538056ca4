"""
Version lifecycle management for SCD Type 2 dimensions.
"""

from datetime import date
from typing import Any, Dict, Hashable, Optional
import logging
import time

from ..common.config import DimensionConfig, ProcessingMetrics
from ..common.exceptions import InvariantViolation
from ..common.records import DimensionVersion
from ..common.utils import business_key_sort_key
from ..storage.base import DimensionStore
from .change_detector import ChangePlan
from .date_manager import DateManager
from .hash_manager import HashManager

logger = logging.getLogger(__name__)


class DimensionVersionManager:
    """
    Closes superseded versions and inserts new ones.

    The manager is the only writer of a dimension's versions and the only
    issuer of its surrogate keys. Surrogate keys continue from the store's
    highest key, so one manager must not be shared by concurrent runs.
    """

    def __init__(self, config: DimensionConfig, store: DimensionStore):
        """
        Initialize DimensionVersionManager with configuration and store.

        Args:
            config: Dimension configuration
            store: Store owning the dimension's versions
        """
        self.config = config
        self.store = store
        self.hash_manager = HashManager(config)
        self.date_manager = DateManager(config)
        self._last_surrogate_key: Optional[int] = None
        self.close_failures = 0

    def _next_surrogate_key(self) -> int:
        if self._last_surrogate_key is None:
            self._last_surrogate_key = self.store.max_surrogate_key()
        self._last_surrogate_key += 1
        return self._last_surrogate_key

    def close_current_version(self, business_key: Hashable, as_of_date: date) -> Optional[DimensionVersion]:
        """
        Close the single current version of ``business_key``.

        Args:
            business_key: Business key whose current version is superseded
            as_of_date: Effective date of the superseding version

        Returns:
            The closed version, or None when no current version exists (caller error, logged)

        Raises:
            InvariantViolation: If several current versions exist
        """
        current = self.store.current_index().get(business_key, [])

        if not current:
            logger.error(f"No current version to close for {business_key!r} in dimension '{self.config.name}'")
            self.close_failures += 1
            return None
        if len(current) > 1:
            message = (f"Dimension '{self.config.name}' has {len(current)} current versions "
                       f"for business key {business_key!r}")
            logger.error(message)
            raise InvariantViolation(message, self.config.name, business_key)

        return self._close(current[0], as_of_date)

    def _close(self, current: DimensionVersion, as_of_date: date) -> DimensionVersion:
        if not self.date_manager.can_supersede(current, as_of_date):
            message = (f"Cannot supersede version {current.version} of {current.business_key!r} in dimension "
                       f"'{self.config.name}': it is effective from {current.effective_date}, "
                       f"not before {as_of_date}")
            logger.error(message)
            raise InvariantViolation(message, self.config.name, current.business_key)

        expiry_date = self.date_manager.expiry_for(as_of_date)
        self.store.close_version(current.surrogate_key, expiry_date)
        logger.debug(f"Closed {current.business_key!r} v{current.version} expiring {expiry_date}")
        return current.closed(expiry_date)

    def insert_new_version(self, business_key: Hashable, attributes: Dict[str, Any], as_of_date: date,
                           version_number: int,
                           passive_attributes: Optional[Dict[str, Any]] = None) -> DimensionVersion:
        """
        Insert a new current version.

        Args:
            business_key: Business key of the entity
            attributes: Tracked attribute values
            as_of_date: Run date
            version_number: 1 for a new entity, previous version + 1 for a change
            passive_attributes: Untracked values carried on the row

        Returns:
            The inserted version
        """
        tracked = {column: attributes.get(column) for column in self.config.tracked_columns}
        passive = {column: (passive_attributes or {}).get(column) for column in self.config.passive_columns}

        version = DimensionVersion(
            surrogate_key=self._next_surrogate_key(),
            business_key=business_key,
            attributes=tracked,
            passive_attributes=passive,
            version=version_number,
            effective_date=self.date_manager.determine_effective_start(as_of_date, version_number),
            expiry_date=self.date_manager.open_end_date,
            is_current=True,
            scd_hash=self.hash_manager.compute_scd_hash(tracked),
        )
        self.store.append_versions([version])
        return version

    def apply_change_plan(self, plan: ChangePlan, as_of_date: date) -> ProcessingMetrics:
        """
        Apply a change plan: insert new entities, close and re-version changed ones.

        For every changed key the close strictly precedes the insert. Keys are
        processed in a stable order so surrogate keys are deterministic. A
        change to a version that took effect on ``as_of_date`` is deferred and
        counted in ``deferred_changes``; the key keeps its current version.

        Args:
            plan: Change plan from the detector
            as_of_date: Run date

        Returns:
            ProcessingMetrics for this dimension
        """
        logger.info(f"🚀 ENTER: apply_change_plan for '{self.config.name}'")
        start_time = time.time()
        metrics = ProcessingMetrics(dimension=self.config.name)

        for entity in sorted(plan.new_records, key=lambda e: business_key_sort_key(e.business_key)):
            self.insert_new_version(entity.business_key, entity.attributes, as_of_date, 1,
                                    entity.passive_attributes)
            metrics.new_records_created += 1

        for entity, current in sorted(plan.changed_records, key=lambda pair: business_key_sort_key(pair[0].business_key)):
            if not self.date_manager.can_supersede(current, as_of_date):
                # Current version took effect on this run date; a later run versions the change
                logger.warning(f"Deferring change of {entity.business_key!r} in '{self.config.name}': "
                               f"version {current.version} is effective from {current.effective_date}")
                metrics.deferred_changes += 1
                continue

            closed = self._close(current, as_of_date)
            metrics.versions_closed += 1
            self.insert_new_version(entity.business_key, entity.attributes, as_of_date, closed.version + 1,
                                    entity.passive_attributes)
            metrics.new_versions_created += 1

        metrics.unchanged_records = len(plan.unchanged_records)
        metrics.close_failures = self.close_failures
        metrics.records_processed = plan.total
        metrics.processing_time_seconds = time.time() - start_time

        logger.info(f"✅ Completed - New: {metrics.new_records_created}, Closed: {metrics.versions_closed}, "
                    f"New versions: {metrics.new_versions_created}, Unchanged: {metrics.unchanged_records}, "
                    f"Deferred: {metrics.deferred_changes}")
        logger.info("🏁 EXIT: apply_change_plan")
        return metrics
