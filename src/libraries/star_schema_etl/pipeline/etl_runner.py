"""
Full ETL run: sources to star schema in one unit of work.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import logging
import time

from ..common.config import ETLConfig, FactLoadMetrics, ProcessingMetrics
from ..common.exceptions import ETLError
from ..common.records import ResolutionFailure, SourceEntity, TransactionLine
from ..common.utils import log_records_info
from ..date_dimension.generator import DateDimensionGenerator
from ..fact_loading.fact_loader import FactLoader
from ..key_resolution.cache_manager import CacheManager
from ..key_resolution.key_resolver import DimensionalKeyResolver
from ..scd_type2.scd_processor import SCDProcessor
from ..sources.base import SourceReader
from ..storage.base import Warehouse

logger = logging.getLogger(__name__)


class RunStatus(Enum):
    """Outcome of a run."""
    SUCCESS = "SUCCESS"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
    ABORTED = "ABORTED"


@dataclass
class RunReport:
    """Summary of one ETL run."""

    as_of_date: date
    status: RunStatus = RunStatus.SUCCESS
    failed_step: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    date_rows_inserted: int = 0
    dimension_metrics: Dict[str, ProcessingMetrics] = field(default_factory=dict)
    fact_metrics: Dict[str, FactLoadMetrics] = field(default_factory=dict)
    resolution_failures: List[ResolutionFailure] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def is_success(self) -> bool:
        return self.status is not RunStatus.ABORTED

    @property
    def inserted(self) -> int:
        if not self.is_success:
            return 0
        return (sum(metrics.rows_inserted for metrics in self.dimension_metrics.values())
                + sum(metrics.facts_inserted for metrics in self.fact_metrics.values()))

    @property
    def closed(self) -> int:
        if not self.is_success:
            return 0
        return sum(metrics.versions_closed for metrics in self.dimension_metrics.values())

    @property
    def skipped(self) -> int:
        return sum(metrics.rows_skipped for metrics in self.fact_metrics.values())

    @property
    def deferred(self) -> int:
        return sum(metrics.deferred_changes for metrics in self.dimension_metrics.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "as_of_date": self.as_of_date.isoformat(),
            "status": self.status.value,
            "failed_step": self.failed_step,
            "error": self.error,
            "error_code": self.error_code,
            "inserted": self.inserted,
            "closed": self.closed,
            "skipped": self.skipped,
            "deferred": self.deferred,
            "date_rows_inserted": self.date_rows_inserted,
            "dimensions": {name: metrics.to_dict() for name, metrics in self.dimension_metrics.items()},
            "facts": {name: metrics.to_dict() for name, metrics in self.fact_metrics.items()},
            "resolution_failures": [failure.to_dict() for failure in self.resolution_failures],
            "duration_seconds": self.duration_seconds,
        }


class ETLRunner:
    """
    Runs the complete OLTP to star schema load.

    Sources are read before anything is written. The date dimension,
    every dimension and every fact are then loaded inside a single
    warehouse transaction; a structural error rolls all of it back and the
    run is reported as aborted with the failing step. Unresolvable fact
    lines do not abort the run unless ``strict_resolution`` is set.
    """

    def __init__(self, config: ETLConfig, warehouse: Warehouse, source_reader: SourceReader):
        """
        Initialize ETLRunner.

        Args:
            config: ETL configuration
            warehouse: Target warehouse
            source_reader: Reader for the operational source feeds
        """
        self.config = config
        self.warehouse = warehouse
        self.source_reader = source_reader
        self.cache_manager = CacheManager(config.enable_caching, config.cache_ttl_minutes)

        logger.info(f"Initialized ETLRunner with {len(config.dimensions)} dimensions and {len(config.facts)} facts")

    def run_full_etl(self, as_of_date: Optional[date] = None) -> RunReport:
        """
        Run the full ETL.

        Args:
            as_of_date: Business date of the run (defaults to today)

        Returns:
            RunReport describing the outcome
        """
        as_of_date = as_of_date or date.today()
        logger.info(f"🚀 ENTER: run_full_etl as of {as_of_date}")
        start_time = time.time()
        report = RunReport(as_of_date=as_of_date)
        step = "read_sources"

        try:
            snapshots, pending = self._read_sources()

            step = "begin_transaction"
            with self.warehouse.transaction():
                step = "date_dimension"
                report.date_rows_inserted = self._ensure_date_dimension(pending)

                for dimension in self.config.dimensions:
                    step = f"dimension:{dimension.name}"
                    processor = SCDProcessor(dimension, self.warehouse.dimension(dimension.name))
                    report.dimension_metrics[dimension.name] = processor.process_scd(
                        snapshots[dimension.name], as_of_date
                    )

                self.cache_manager.clear_cache()

                for fact in self.config.facts:
                    step = f"fact:{fact.name}"
                    loader = FactLoader(
                        fact,
                        self.warehouse.fact(fact.name),
                        self._resolvers_for(fact.dimension_references),
                        self.warehouse.dates,
                        self.config.measure_policy,
                        self.config.strict_resolution,
                    )
                    result = loader.load(pending[fact.name])
                    report.fact_metrics[fact.name] = result.metrics
                    report.resolution_failures.extend(result.failures)

                step = "verify_constraints"

        except ETLError as e:
            self._abort(report, step, str(e), e.error_code)
        except Exception as e:
            self._abort(report, step, str(e), None)
        else:
            report.status = RunStatus.PARTIAL_SUCCESS if report.skipped or report.deferred else RunStatus.SUCCESS

        report.duration_seconds = time.time() - start_time
        logger.info(f"Run finished with status {report.status.value}: inserted={report.inserted}, "
                    f"closed={report.closed}, skipped={report.skipped}, "
                    f"deferred={report.deferred}")
        logger.info("🏁 EXIT: run_full_etl")
        return report

    def _read_sources(self) -> Tuple[Dict[str, List[SourceEntity]], Dict[str, List[TransactionLine]]]:
        snapshots = {
            dimension.name: self.source_reader.read_entities(dimension)
            for dimension in self.config.dimensions
        }
        pending = {
            fact.name: self.source_reader.read_transactions(fact)
            for fact in self.config.facts
        }
        for name, rows in list(snapshots.items()) + list(pending.items()):
            log_records_info(rows, name)
        return snapshots, pending

    def _ensure_date_dimension(self, pending: Dict[str, List[TransactionLine]]) -> int:
        """Populate the configured calendar range widened to every pending transaction date."""
        settings = self.config.date_dimension
        bounds = [value for value in (settings.start_date, settings.end_date) if value is not None]
        bounds.extend(
            line.transaction_date
            for lines in pending.values()
            for line in lines
            if line.transaction_date is not None
        )
        if not bounds:
            logger.info("No calendar range configured and no pending transactions; date dimension unchanged")
            return 0

        generator = DateDimensionGenerator(settings.holidays)
        return generator.populate(self.warehouse.dates, min(bounds), max(bounds))

    def _resolvers_for(self, references: Dict[str, str]) -> Dict[str, DimensionalKeyResolver]:
        return {
            role: DimensionalKeyResolver(
                self.config.dimension(dimension_name),
                self.warehouse.dimension(dimension_name),
                self.config.resolution_mode,
                self.cache_manager,
            )
            for role, dimension_name in references.items()
        }

    @staticmethod
    def _abort(report: RunReport, step: str, message: str, error_code: Optional[str]) -> None:
        logger.error(f"Run aborted at step '{step}': {message}")
        report.status = RunStatus.ABORTED
        report.failed_step = step
        report.error = message
        report.error_code = error_code
