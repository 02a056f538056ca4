"""
Store abstractions owning dimension, fact and calendar state.

Every table is owned by a dedicated store; a ``Warehouse`` groups the stores
of one target and provides the single unit of work a run writes through.
The engine assumes a single writer per warehouse.
"""

from abc import ABC, abstractmethod
from collections import Counter
from contextlib import contextmanager
from datetime import date
from typing import Dict, Hashable, Iterator, List, Optional, Set
import logging

from ..common.config import DimensionConfig, FactConfig
from ..common.exceptions import ConstraintViolation
from ..common.records import DimensionVersion, FactRecord, DateRow
from ..common.utils import date_key_for

logger = logging.getLogger(__name__)


class DimensionStore(ABC):
    """Owns the version history of one dimension."""

    def __init__(self, config: DimensionConfig):
        self.config = config

    @property
    def name(self) -> str:
        return self.config.name

    @abstractmethod
    def current_index(self) -> Dict[Hashable, List[DimensionVersion]]:
        """Current versions grouped by business key (more than one per key is an invariant breach)."""

    @abstractmethod
    def known_business_keys(self) -> Set[Hashable]:
        """Every business key with at least one version, current or closed."""

    @abstractmethod
    def history(self, business_key: Optional[Hashable] = None) -> List[DimensionVersion]:
        """Full history, optionally for one business key, ordered by key and version."""

    @abstractmethod
    def max_surrogate_key(self) -> int:
        """Highest surrogate key assigned so far (0 for an empty dimension)."""

    @abstractmethod
    def close_version(self, surrogate_key: int, expiry_date: date) -> None:
        """Mark a version as no longer current, expiring at ``expiry_date``."""

    @abstractmethod
    def append_versions(self, versions: List[DimensionVersion]) -> None:
        """Append new versions."""

    def surrogate_keys(self) -> Set[int]:
        return {version.surrogate_key for version in self.history()}


class FactStore(ABC):
    """Owns the rows of one fact table."""

    def __init__(self, config: FactConfig):
        self.config = config

    @property
    def name(self) -> str:
        return self.config.name

    @abstractmethod
    def existing_natural_keys(self) -> Set[Hashable]:
        """Natural transaction keys already loaded."""

    @abstractmethod
    def append_facts(self, facts: List[FactRecord]) -> None:
        """Append a batch of resolved fact rows."""

    @abstractmethod
    def facts(self) -> List[FactRecord]:
        """All loaded fact rows."""


class DateDimensionStore(ABC):
    """Owns the materialized calendar."""

    @abstractmethod
    def existing_dates(self) -> Set[date]:
        """Calendar dates already materialized."""

    @abstractmethod
    def append_rows(self, rows: List[DateRow]) -> None:
        """Append calendar rows."""

    @abstractmethod
    def rows(self) -> List[DateRow]:
        """All calendar rows ordered by date."""

    def date_key(self, value: date) -> Optional[int]:
        """Key of the row for ``value`` or None when the date is not materialized."""
        if value in self.existing_dates():
            return date_key_for(value)
        return None


class Warehouse(ABC):
    """A star schema target: one date dimension, named dimensions and facts."""

    def __init__(self, dimensions: Dict[str, DimensionStore], facts: Dict[str, FactStore],
                 dates: DateDimensionStore):
        self.dimensions = dimensions
        self.facts = facts
        self.dates = dates
        self._in_transaction = False

    def dimension(self, name: str) -> DimensionStore:
        return self.dimensions[name]

    def fact(self, name: str) -> FactStore:
        return self.facts[name]

    @contextmanager
    def transaction(self) -> Iterator["Warehouse"]:
        """
        Unit of work for one run.

        Constraints are verified before commit; any exception, including a
        ``ConstraintViolation``, rolls every store back to its state on entry.
        """
        if self._in_transaction:
            raise RuntimeError("Nested warehouse transactions are not supported")

        self._begin()
        self._in_transaction = True
        try:
            yield self
            self.verify_constraints()
            self._commit()
            logger.info("Committed warehouse transaction")
        except Exception as e:
            logger.error(f"Rolling back warehouse transaction: {str(e)}")
            self._rollback()
            raise
        finally:
            self._in_transaction = False

    @abstractmethod
    def _begin(self) -> None:
        """Record the state to return to on rollback."""

    @abstractmethod
    def _commit(self) -> None:
        """Make the run's writes durable."""

    @abstractmethod
    def _rollback(self) -> None:
        """Discard the run's writes."""

    def verify_constraints(self) -> None:
        """
        Check uniqueness and foreign-key rules across all stores.

        Raises:
            ConstraintViolation: If any rule is broken
        """
        violations = []

        surrogate_keys = {}
        for name, store in self.dimensions.items():
            for business_key, versions in store.current_index().items():
                if len(versions) > 1:
                    violations.append(f"dimension '{name}' has {len(versions)} current versions for key {business_key!r}")
            history_keys = [version.surrogate_key for version in store.history()]
            duplicates = [key for key, count in Counter(history_keys).items() if count > 1]
            if duplicates:
                violations.append(f"dimension '{name}' has duplicate surrogate keys: {sorted(duplicates)}")
            surrogate_keys[name] = set(history_keys)

        date_keys = {date_key_for(row.full_date) for row in self.dates.rows()}

        for name, store in self.facts.items():
            loaded = store.facts()
            counts = Counter(fact.natural_transaction_key for fact in loaded)
            duplicates = [key for key, count in counts.items() if count > 1]
            if duplicates:
                violations.append(f"fact '{name}' has duplicate natural transaction keys: {duplicates}")
            for fact in loaded:
                if fact.date_key not in date_keys:
                    violations.append(f"fact '{name}' row {fact.natural_transaction_key!r} references missing date_key {fact.date_key}")
                for role, dimension_name in store.config.dimension_references.items():
                    if fact.dimension_keys.get(role) not in surrogate_keys.get(dimension_name, set()):
                        violations.append(
                            f"fact '{name}' row {fact.natural_transaction_key!r} references missing "
                            f"{role} {fact.dimension_keys.get(role)!r}"
                        )

        if violations:
            raise ConstraintViolation(f"{len(violations)} constraint violation(s): {violations[:5]}", violations)
