"""
Main SCD Type 2 processor with clean separation of concerns.
"""

from datetime import date
from typing import Dict, Hashable, List, Tuple
import logging
import time

from ..common.config import DimensionConfig, ProcessingMetrics
from ..common.exceptions import ETLError, InvariantViolation, SCDValidationError, SCDProcessingError
from ..common.records import DimensionVersion, SourceEntity
from ..storage.base import DimensionStore
from .change_detector import ChangeDetector, ChangePlan
from .validators import SCDValidator
from .version_manager import DimensionVersionManager

logger = logging.getLogger(__name__)


class SCDProcessor:
    """Loads one dimension from a source snapshot."""

    def __init__(self, config: DimensionConfig, store: DimensionStore):
        """
        Initialize SCDProcessor with configuration and store.

        Args:
            config: Dimension configuration
            store: Store owning the dimension's versions
        """
        self.config = config
        self.store = store

        # Initialize components
        self.detector = ChangeDetector(config)
        self.version_manager = DimensionVersionManager(config, store)
        self.validator = SCDValidator(config)

        logger.info(f"Initialized SCDProcessor for dimension: {config.name}")

    def process_scd(self, snapshot: List[SourceEntity], as_of_date: date) -> ProcessingMetrics:
        """
        Main entry point for SCD Type 2 processing.

        Args:
            snapshot: Current-state source entities for this dimension
            as_of_date: Run date

        Returns:
            ProcessingMetrics: Processing metrics and status
        """
        start_time = time.time()

        try:
            logger.info(f"Starting SCD processing of {len(snapshot)} records for '{self.config.name}'")

            # Step 1: Validate input data
            validation_result = self.validator.validate_source_data(snapshot)
            if not validation_result.is_valid:
                logger.error(f"Validation failed: {validation_result.errors}")
                raise SCDValidationError(f"Validation failed: {validation_result.errors}",
                                         validation_result.errors)

            # Step 2: Deduplicate source snapshot
            deduplicated, duplicates_removed = self._deduplicate_source_data(snapshot)

            # Step 3: Detect changes against current versions
            change_plan = self.create_change_plan(deduplicated)

            # Step 4: Apply the plan
            metrics = self.version_manager.apply_change_plan(change_plan, as_of_date)
            metrics.duplicates_removed = duplicates_removed

            # Step 5: Verify history of every key touched by this run
            if self.config.verify_history:
                self._verify_touched_keys(change_plan)

            metrics.processing_time_seconds = time.time() - start_time
            logger.info(f"SCD processing completed successfully. Metrics: {metrics.to_dict()}")
            return metrics

        except ETLError:
            raise
        except Exception as e:
            logger.error(f"SCD processing failed: {str(e)}")
            raise SCDProcessingError(f"SCD processing failed for '{self.config.name}': {str(e)}",
                                     processing_step=self.config.name)

    def create_change_plan(self, snapshot: List[SourceEntity]) -> ChangePlan:
        """
        Classify a deduplicated snapshot against the store's current versions.

        Args:
            snapshot: Source entities, one per business key

        Returns:
            ChangePlan
        """
        current_index = self.store.current_index()
        known_keys = self.store.known_business_keys()
        return self.detector.detect(snapshot, current_index, known_keys)

    def _deduplicate_source_data(self, snapshot: List[SourceEntity]) -> Tuple[List[SourceEntity], int]:
        """
        Keep one entity per business key.

        Strategy ``latest`` keeps the entity with the latest ``as_of_date``
        (entities without a date rank lowest), ``earliest`` the earliest.
        Ties go to the later record in snapshot order for ``latest`` and the
        earlier one for ``earliest``.

        Args:
            snapshot: Source entities

        Returns:
            Deduplicated entities in first-seen key order, and the number removed
        """
        if not self.config.enable_source_deduplication:
            return list(snapshot), 0

        chosen: Dict[Hashable, Tuple[tuple, SourceEntity]] = {}
        latest = self.config.deduplication_strategy == "latest"

        for position, entity in enumerate(snapshot):
            has_date = entity.as_of_date is not None
            if latest:
                rank = (has_date, entity.as_of_date or date.min, position)
            else:
                rank = (not has_date, entity.as_of_date or date.max, position)

            existing = chosen.get(entity.business_key)
            if existing is None or self._outranks(rank, existing[0], latest):
                chosen[entity.business_key] = (rank, entity)

        deduplicated = [entity for _, entity in chosen.values()]
        duplicates_removed = len(snapshot) - len(deduplicated)

        if duplicates_removed > 0:
            logger.warning(f"Removed {duplicates_removed} duplicate records from source data "
                           f"using '{self.config.deduplication_strategy}' strategy")
        else:
            logger.info("No duplicate records found in source data")

        return deduplicated, duplicates_removed

    @staticmethod
    def _outranks(candidate: tuple, incumbent: tuple, latest: bool) -> bool:
        return candidate > incumbent if latest else candidate < incumbent

    def _verify_touched_keys(self, change_plan: ChangePlan) -> None:
        touched = {entity.business_key for entity in change_plan.new_records}
        touched.update(entity.business_key for entity, _ in change_plan.changed_records)
        if not touched:
            return

        histories: Dict[Hashable, List[DimensionVersion]] = {}
        for version in self.store.history():
            if version.business_key in touched:
                histories.setdefault(version.business_key, []).append(version)

        for business_key, versions in histories.items():
            result = self.validator.validate_history(versions)
            if not result.is_valid:
                message = f"History check failed for '{self.config.name}': {result.errors}"
                logger.error(message)
                raise InvariantViolation(message, self.config.name, business_key)

    def get_table_info(self) -> dict:
        """
        Get information about the dimension.

        Returns:
            Dictionary with dimension information
        """
        history = self.store.history()
        current_count = sum(1 for version in history if version.is_current)
        return {
            "dimension": self.config.name,
            "table_name": self.config.target_table,
            "total_records": len(history),
            "current_records": current_count,
            "historical_records": len(history) - current_count
        }
