"""
Data validation utilities for SCD processing.
"""

from collections import Counter
from typing import Dict, Hashable, Iterable, List
import logging

from ..common.config import DimensionConfig, ValidationResult
from ..common.records import DimensionVersion, SourceEntity
from ..common.utils import validate_business_keys
from .date_manager import DateManager

logger = logging.getLogger(__name__)


class SCDValidator:
    """Validates source snapshots and dimension histories."""

    def __init__(self, config: DimensionConfig):
        """
        Initialize SCDValidator with configuration.

        Args:
            config: Dimension configuration
        """
        self.config = config
        self.date_manager = DateManager(config)

    def validate_source_data(self, entities: List[SourceEntity]) -> ValidationResult:
        """
        Validate a source snapshot before SCD processing.

        Args:
            entities: Source entities for one dimension

        Returns:
            ValidationResult with validation status and errors
        """
        result = ValidationResult(is_valid=True)

        # Check for null business keys
        for error in validate_business_keys(entity.business_key for entity in entities):
            result.add_error(f"{error} column: {self.config.business_key_column}")

        # Check required attributes
        self._validate_required_attributes(entities, result)

        # Duplicates are resolved by deduplication when it is enabled
        self._validate_duplicates(entities, result)

        logger.info(f"Validation completed. Valid: {result.is_valid}, Errors: {len(result.errors)}")
        return result

    def _validate_required_attributes(self, entities: List[SourceEntity], result: ValidationResult) -> None:
        """Validate that every tracked column is present on every entity."""
        missing = Counter()
        for entity in entities:
            for column in self.config.tracked_columns:
                if column not in entity.attributes:
                    missing[column] += 1

        for column, count in missing.items():
            result.add_error(f"Missing tracked column '{column}' on {count} source records")

    def _validate_duplicates(self, entities: List[SourceEntity], result: ValidationResult) -> None:
        """Validate business key uniqueness within the snapshot."""
        counts = Counter(entity.business_key for entity in entities)
        duplicates = sorted((str(key) for key, count in counts.items() if count > 1))
        if not duplicates:
            return

        message = f"Found {len(duplicates)} business keys with several source records: {duplicates[:10]}"
        if self.config.enable_source_deduplication:
            result.add_warning(message)
        else:
            result.add_error(message)

    def validate_history(self, versions: List[DimensionVersion]) -> ValidationResult:
        """
        Validate the SCD Type 2 history of one business key.

        Checks a single current version, versions numbered 1..n without gaps,
        and contiguous, non-overlapping validity windows.

        Args:
            versions: All versions of one business key

        Returns:
            ValidationResult with validation status
        """
        result = ValidationResult(is_valid=True)
        if not versions:
            return result

        business_key = versions[0].business_key
        current_count = sum(1 for version in versions if version.is_current)
        if current_count != 1:
            result.add_error(f"{business_key!r} has {current_count} current versions")

        numbers = sorted(version.version for version in versions)
        if numbers != list(range(1, len(numbers) + 1)):
            result.add_error(f"{business_key!r} has non-contiguous version numbers {numbers}")

        for error in self.date_manager.validate_date_consistency(versions):
            result.add_error(f"{business_key!r}: {error}")

        return result

    def validate_dimension(self, versions: Iterable[DimensionVersion]) -> ValidationResult:
        """
        Validate every business key of a dimension.

        Args:
            versions: Full dimension history

        Returns:
            ValidationResult aggregating all keys
        """
        result = ValidationResult(is_valid=True)
        by_key: Dict[Hashable, List[DimensionVersion]] = {}
        for version in versions:
            by_key.setdefault(version.business_key, []).append(version)

        for key_versions in by_key.values():
            key_result = self.validate_history(key_versions)
            for error in key_result.errors:
                result.add_error(error)

        logger.info(f"Validated {len(by_key)} business keys in '{self.config.name}': {len(result.errors)} errors")
        return result
