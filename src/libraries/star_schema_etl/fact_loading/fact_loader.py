"""
Exactly-once fact loading.
"""

from dataclasses import dataclass, field
from typing import Dict, Hashable, List, Optional, Set, Tuple
import logging
import time

from ..common.config import FactConfig, FactLoadMetrics, MeasurePolicy
from ..common.exceptions import ETLError, FactLoadError, ResolutionError
from ..common.records import DimensionVersion, FactRecord, ResolutionFailure, TransactionLine
from ..common.utils import date_key_for
from ..key_resolution.key_resolver import DimensionalKeyResolver
from ..storage.base import DateDimensionStore, FactStore
from .measures import aggregate_inventory_movements, measure_calculator_for

logger = logging.getLogger(__name__)


@dataclass
class FactLoadResult:
    """Outcome of one fact load."""

    metrics: FactLoadMetrics
    failures: List[ResolutionFailure] = field(default_factory=list)
    loaded: List[FactRecord] = field(default_factory=list)


class FactLoader:
    """
    Loads pending transaction lines into one fact table exactly once.

    Lines whose natural transaction key is already in the store are skipped
    (anti-join), so re-running with the same pending set inserts nothing.
    Lines with any unresolved reference are reported and skipped; they are
    never loaded with a missing key.
    """

    def __init__(self, config: FactConfig, store: FactStore,
                 resolvers: Dict[str, DimensionalKeyResolver], dates: DateDimensionStore,
                 policy: Optional[MeasurePolicy] = None, strict_resolution: bool = False):
        """
        Initialize FactLoader.

        Args:
            config: Fact configuration
            store: Store owning the fact rows
            resolvers: One resolver per dimension role in ``config.dimension_references``
            dates: Date dimension store
            policy: Measure policy constants
            strict_resolution: Raise ResolutionError instead of skipping unresolved lines
        """
        missing_roles = set(config.dimension_references) - set(resolvers)
        if missing_roles:
            raise FactLoadError(f"No resolver for roles {sorted(missing_roles)}", config.name)

        self.config = config
        self.store = store
        self.resolvers = resolvers
        self.dates = dates
        self.policy = policy or MeasurePolicy()
        self.strict_resolution = strict_resolution
        self.calculator = measure_calculator_for(config, self.policy)

        logger.info(f"Initialized FactLoader for fact: {config.name}")

    def load(self, pending: List[TransactionLine]) -> FactLoadResult:
        """
        Load a pending set.

        Args:
            pending: Pending transaction lines (raw movements for inventory facts)

        Returns:
            FactLoadResult with metrics, resolution failures and the inserted rows

        Raises:
            ResolutionError: In strict mode, when any line cannot be resolved
            FactLoadError: When measures cannot be computed
        """
        start_time = time.time()
        metrics = FactLoadMetrics(fact=self.config.name)

        try:
            lines = aggregate_inventory_movements(pending, self.config) if self.config.is_inventory else list(pending)
            metrics.lines_pending = len(lines)

            # Step 1: Anti-join against loaded facts
            unloaded, already_loaded, duplicates = self.filter_unloaded(lines, self.store.existing_natural_keys())
            metrics.already_loaded = already_loaded
            metrics.duplicates_in_batch = duplicates

            # Step 2 and 3: Resolve keys, compute measures
            facts, failures = self._build_facts(unloaded)
            metrics.resolution_failures = len({failure.natural_transaction_key for failure in failures})

            if failures and self.strict_resolution:
                raise ResolutionError(
                    f"{metrics.resolution_failures} lines of fact '{self.config.name}' could not be resolved",
                    failures
                )

            # Step 4: Insert the batch
            if facts:
                self.store.append_facts(facts)
            metrics.facts_inserted = len(facts)
            metrics.processing_time_seconds = time.time() - start_time

            logger.info(f"Fact load completed for '{self.config.name}'. Metrics: {metrics.to_dict()}")
            return FactLoadResult(metrics=metrics, failures=failures, loaded=facts)

        except ETLError:
            raise
        except Exception as e:
            logger.error(f"Fact load failed for '{self.config.name}': {str(e)}")
            raise FactLoadError(f"Fact load failed for '{self.config.name}': {str(e)}", self.config.name)

    def filter_unloaded(self, lines: List[TransactionLine],
                        existing_keys: Set[Hashable]) -> Tuple[List[TransactionLine], int, int]:
        """
        Anti-join pending lines against loaded natural keys.

        Within the pending set only the first line per natural key is kept.

        Args:
            lines: Pending lines
            existing_keys: Natural keys already in the fact store

        Returns:
            Lines to load, count already loaded, count of in-batch duplicates
        """
        unloaded = []
        seen = set()
        already_loaded = 0
        duplicates = 0

        for line in lines:
            key = line.natural_transaction_key
            if key in existing_keys:
                already_loaded += 1
            elif key in seen:
                duplicates += 1
            else:
                seen.add(key)
                unloaded.append(line)

        if already_loaded:
            logger.info(f"Skipping {already_loaded} lines already loaded into '{self.config.name}'")
        if duplicates:
            logger.warning(f"Skipping {duplicates} duplicate natural keys within the pending set of '{self.config.name}'")
        return unloaded, already_loaded, duplicates

    def _build_facts(self, lines: List[TransactionLine]) -> Tuple[List[FactRecord], List[ResolutionFailure]]:
        facts = []
        failures = []
        calendar = self.dates.existing_dates()

        for line in lines:
            line_failures = []

            if line.transaction_date is None:
                failures.append(self._failure(line, self.config.date_key_column, None, "missing transaction date"))
                logger.warning(f"Line {line.natural_transaction_key!r} of '{self.config.name}' has no transaction date")
                continue

            date_key = None
            if line.transaction_date in calendar:
                date_key = date_key_for(line.transaction_date)
            else:
                line_failures.append(self._failure(line, self.config.date_key_column, line.transaction_date,
                                                   "date not present in date dimension"))

            resolved: Dict[str, DimensionVersion] = {}
            for role, resolver in self.resolvers.items():
                if role not in self.config.dimension_references:
                    continue
                business_key = line.business_keys.get(role)
                version = None if business_key is None else resolver.resolve(business_key, line.transaction_date)
                if version is None:
                    line_failures.append(self._failure(line, role, business_key,
                                                       f"no matching version in dimension '{resolver.config.name}'"))
                else:
                    resolved[role] = version

            if line_failures:
                for failure in line_failures:
                    logger.warning(f"Unresolved {failure.role} {failure.business_key!r} on line "
                                   f"{failure.natural_transaction_key!r}: {failure.reason}")
                failures.extend(line_failures)
                continue

            facts.append(FactRecord(
                natural_transaction_key=line.natural_transaction_key,
                date_key=date_key,
                dimension_keys={role: version.surrogate_key for role, version in resolved.items()},
                measures=self.calculator.compute(line, resolved),
            ))

        return facts, failures

    def _failure(self, line: TransactionLine, role: str, business_key, reason: str) -> ResolutionFailure:
        return ResolutionFailure(
            fact_name=self.config.name,
            natural_transaction_key=line.natural_transaction_key,
            role=role,
            business_key=business_key,
            reason=reason,
        )
