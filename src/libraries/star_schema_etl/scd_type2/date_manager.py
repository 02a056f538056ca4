"""
Date management utilities for SCD processing.
"""

from datetime import date, timedelta
from typing import List, Optional
import logging

from ..common.config import DimensionConfig
from ..common.records import OPEN_END_DATE, DimensionVersion

logger = logging.getLogger(__name__)


class DateManager:
    """Manages validity windows for SCD processing."""

    def __init__(self, config: DimensionConfig):
        """
        Initialize DateManager with configuration.

        Args:
            config: Dimension configuration
        """
        self.config = config

    @property
    def open_end_date(self) -> date:
        return OPEN_END_DATE

    def determine_effective_start(self, as_of_date: date, version_number: int) -> date:
        """
        Determine effective start date for a new version.

        Version 1 rows use ``initial_effective_date`` when configured so that
        facts dated before the first load can still resolve by transaction
        date; every other version starts on the run date.

        Args:
            as_of_date: Run date
            version_number: Version being inserted

        Returns:
            Effective start date
        """
        if version_number == 1 and self.config.initial_effective_date is not None:
            return min(self.config.initial_effective_date, as_of_date)
        return as_of_date

    def expiry_for(self, as_of_date: date) -> date:
        """Expiry date of a version superseded on ``as_of_date``."""
        return as_of_date - timedelta(days=1)

    def can_supersede(self, current: DimensionVersion, as_of_date: date) -> bool:
        """Whether closing ``current`` on ``as_of_date`` leaves a non-empty window."""
        return self.expiry_for(as_of_date) >= current.effective_date

    def validate_date_consistency(self, versions: List[DimensionVersion]) -> List[str]:
        """
        Validate validity windows of one business key's history.

        Args:
            versions: All versions of one business key

        Returns:
            List of validation errors
        """
        errors = []
        ordered = sorted(versions, key=lambda v: v.version)

        for version in ordered:
            if version.effective_date > version.expiry_date:
                errors.append(f"version {version.version} has effective_date after expiry_date")
            if version.is_current and version.expiry_date != OPEN_END_DATE:
                errors.append(f"current version {version.version} is not open-ended")
            if not version.is_current and version.expiry_date == OPEN_END_DATE:
                errors.append(f"closed version {version.version} is still open-ended")

        for previous, following in zip(ordered, ordered[1:]):
            expected_expiry: Optional[date] = self.expiry_for(following.effective_date)
            if previous.expiry_date != expected_expiry:
                errors.append(
                    f"version {previous.version} expires {previous.expiry_date}, "
                    f"expected {expected_expiry} (day before version {following.version})"
                )

        return errors
