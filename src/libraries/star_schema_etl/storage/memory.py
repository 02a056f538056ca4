"""
In-memory stores, used for tests, local runs and small targets.
"""

from datetime import date
from typing import Dict, Hashable, List, Optional, Set
import logging

from ..common.config import DimensionConfig, ETLConfig, FactConfig
from ..common.records import DimensionVersion, FactRecord, DateRow
from ..common.utils import business_key_sort_key
from .base import DimensionStore, FactStore, DateDimensionStore, Warehouse

logger = logging.getLogger(__name__)


class InMemoryDimensionStore(DimensionStore):
    """Dimension history kept as a list of immutable versions."""

    def __init__(self, config: DimensionConfig, versions: Optional[List[DimensionVersion]] = None):
        super().__init__(config)
        self._versions: List[DimensionVersion] = list(versions or [])

    def current_index(self) -> Dict[Hashable, List[DimensionVersion]]:
        index: Dict[Hashable, List[DimensionVersion]] = {}
        for version in self._versions:
            if version.is_current:
                index.setdefault(version.business_key, []).append(version)
        return index

    def known_business_keys(self) -> Set[Hashable]:
        return {version.business_key for version in self._versions}

    def history(self, business_key: Optional[Hashable] = None) -> List[DimensionVersion]:
        versions = [
            version for version in self._versions
            if business_key is None or version.business_key == business_key
        ]
        return sorted(versions, key=lambda v: (business_key_sort_key(v.business_key), v.version))

    def max_surrogate_key(self) -> int:
        return max((version.surrogate_key for version in self._versions), default=0)

    def close_version(self, surrogate_key: int, expiry_date: date) -> None:
        for position, version in enumerate(self._versions):
            if version.surrogate_key == surrogate_key:
                self._versions[position] = version.closed(expiry_date)
                return
        raise KeyError(f"No version with surrogate key {surrogate_key} in dimension '{self.name}'")

    def append_versions(self, versions: List[DimensionVersion]) -> None:
        self._versions.extend(versions)

    def snapshot(self) -> List[DimensionVersion]:
        return list(self._versions)

    def restore(self, state: List[DimensionVersion]) -> None:
        self._versions = list(state)


class InMemoryFactStore(FactStore):
    """Fact rows kept in insertion order."""

    def __init__(self, config: FactConfig, facts: Optional[List[FactRecord]] = None):
        super().__init__(config)
        self._facts: List[FactRecord] = list(facts or [])

    def existing_natural_keys(self) -> Set[Hashable]:
        return {fact.natural_transaction_key for fact in self._facts}

    def append_facts(self, facts: List[FactRecord]) -> None:
        self._facts.extend(facts)

    def facts(self) -> List[FactRecord]:
        return list(self._facts)

    def snapshot(self) -> List[FactRecord]:
        return list(self._facts)

    def restore(self, state: List[FactRecord]) -> None:
        self._facts = list(state)


class InMemoryDateDimensionStore(DateDimensionStore):
    """Calendar rows indexed by date."""

    def __init__(self, rows: Optional[List[DateRow]] = None):
        self._rows: Dict[date, DateRow] = {row.full_date: row for row in rows or []}

    def existing_dates(self) -> Set[date]:
        return set(self._rows)

    def append_rows(self, rows: List[DateRow]) -> None:
        for row in rows:
            if row.full_date in self._rows:
                raise ValueError(f"Date {row.full_date} already exists in the date dimension")
            self._rows[row.full_date] = row

    def rows(self) -> List[DateRow]:
        return [self._rows[key] for key in sorted(self._rows)]

    def snapshot(self) -> Dict[date, DateRow]:
        return dict(self._rows)

    def restore(self, state: Dict[date, DateRow]) -> None:
        self._rows = dict(state)


class InMemoryWarehouse(Warehouse):
    """Warehouse whose unit of work is a snapshot restored on rollback."""

    def __init__(self, dimensions: Dict[str, InMemoryDimensionStore], facts: Dict[str, InMemoryFactStore],
                 dates: Optional[InMemoryDateDimensionStore] = None):
        super().__init__(dimensions, facts, dates or InMemoryDateDimensionStore())
        self._snapshot = None

    @classmethod
    def from_config(cls, config: ETLConfig) -> "InMemoryWarehouse":
        """Create empty stores for every dimension and fact of a configuration."""
        return cls(
            dimensions={dimension.name: InMemoryDimensionStore(dimension) for dimension in config.dimensions},
            facts={fact.name: InMemoryFactStore(fact) for fact in config.facts},
        )

    def _begin(self) -> None:
        self._snapshot = {
            "dimensions": {name: store.snapshot() for name, store in self.dimensions.items()},
            "facts": {name: store.snapshot() for name, store in self.facts.items()},
            "dates": self.dates.snapshot(),
        }

    def _commit(self) -> None:
        self._snapshot = None

    def _rollback(self) -> None:
        if self._snapshot is None:
            return
        for name, state in self._snapshot["dimensions"].items():
            self.dimensions[name].restore(state)
        for name, state in self._snapshot["facts"].items():
            self.facts[name].restore(state)
        self.dates.restore(self._snapshot["dates"])
        self._snapshot = None
        logger.info("Restored in-memory warehouse to its state before the transaction")
