"""
Change detection between a source snapshot and the current dimension versions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Hashable, Iterable, List, Optional, Set, Tuple
import logging

from ..common.config import DimensionConfig
from ..common.exceptions import InvariantViolation
from ..common.records import DimensionVersion, SourceEntity

logger = logging.getLogger(__name__)


class ChangeType(Enum):
    """Classification of a source entity against its dimension."""
    NEW = "new"
    CHANGED = "changed"
    UNCHANGED = "unchanged"


@dataclass
class ChangePlan:
    """A source snapshot partitioned by change type."""

    new_records: List[SourceEntity] = field(default_factory=list)
    changed_records: List[Tuple[SourceEntity, DimensionVersion]] = field(default_factory=list)
    unchanged_records: List[Tuple[SourceEntity, DimensionVersion]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.new_records) + len(self.changed_records) + len(self.unchanged_records)


def classify(entity: SourceEntity, current: Optional[DimensionVersion],
             tracked_columns: List[str]) -> ChangeType:
    """
    Classify one entity against its current version.

    All tracked attributes are compared together, exactly and null-safe.
    """
    if current is None:
        return ChangeType.NEW

    source_values = tuple(entity.attributes.get(column) for column in tracked_columns)
    current_values = tuple(current.attributes.get(column) for column in tracked_columns)
    if source_values == current_values:
        return ChangeType.UNCHANGED
    return ChangeType.CHANGED


class ChangeDetector:
    """Partitions a snapshot into new, changed and unchanged entities."""

    def __init__(self, config: DimensionConfig):
        self.config = config

    def detect(self, snapshot: Iterable[SourceEntity],
               current_index: Dict[Hashable, List[DimensionVersion]],
               known_business_keys: Set[Hashable]) -> ChangePlan:
        """
        Create a change plan for a deduplicated snapshot.

        Args:
            snapshot: Source entities, at most one per business key
            current_index: Current versions grouped by business key
            known_business_keys: Keys with any version, current or closed

        Returns:
            ChangePlan

        Raises:
            InvariantViolation: If a key has several current versions, or has
                history but no current version
        """
        plan = ChangePlan()

        for entity in snapshot:
            current = self._single_current(entity.business_key, current_index, known_business_keys)
            change_type = classify(entity, current, self.config.tracked_columns)

            if change_type is ChangeType.NEW:
                plan.new_records.append(entity)
            elif change_type is ChangeType.CHANGED:
                plan.changed_records.append((entity, current))
            else:
                plan.unchanged_records.append((entity, current))

        logger.info(
            f"Change plan for '{self.config.name}': {len(plan.new_records)} new, "
            f"{len(plan.changed_records)} changed, {len(plan.unchanged_records)} unchanged"
        )
        return plan

    def _single_current(self, business_key: Hashable,
                        current_index: Dict[Hashable, List[DimensionVersion]],
                        known_business_keys: Set[Hashable]) -> Optional[DimensionVersion]:
        versions = current_index.get(business_key, [])

        if len(versions) > 1:
            message = (f"Dimension '{self.config.name}' has {len(versions)} current versions "
                       f"for business key {business_key!r}")
            logger.error(message)
            raise InvariantViolation(message, self.config.name, business_key)

        if not versions:
            if business_key in known_business_keys:
                message = (f"Dimension '{self.config.name}' has history but no current version "
                           f"for business key {business_key!r}")
                logger.error(message)
                raise InvariantViolation(message, self.config.name, business_key)
            return None

        return versions[0]
