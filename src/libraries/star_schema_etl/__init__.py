"""
Star Schema ETL Library

Loads a retail star schema from an operational database: SCD Type 2
dimensions, exactly-once fact tables and a generated date dimension, all
written through one warehouse unit of work per run.

Main Components:
- SCDProcessor: Detects changes in a dimension snapshot and versions them
- DimensionalKeyResolver: Resolves business keys of fact lines to surrogate keys
- FactLoader: Loads pending transaction lines into a fact table exactly once
- DateDimensionGenerator: Materializes calendar rows for a date range
- ETLRunner: Runs the full load and reports the outcome

Author: Data Engineering Team
Version: 1.0.0
"""

from .scd_type2.scd_processor import SCDProcessor
from .scd_type2.version_manager import DimensionVersionManager
from .scd_type2.change_detector import ChangeDetector, ChangeType
from .key_resolution.key_resolver import DimensionalKeyResolver
from .fact_loading.fact_loader import FactLoader
from .date_dimension.generator import DateDimensionGenerator
from .pipeline.etl_runner import ETLRunner, RunReport, RunStatus
from .storage.memory import InMemoryWarehouse
from .storage.delta import DeltaWarehouse
from .sources.memory import InMemorySourceReader
from .sources.spark_source import SparkSourceReader
from .common.config import (
    DimensionConfig,
    FactConfig,
    DateDimensionConfig,
    MeasurePolicy,
    ETLConfig,
    load_config,
    default_retail_config
)
from .common.exceptions import (
    ETLError,
    SCDValidationError,
    SCDProcessingError,
    InvariantViolation,
    ResolutionError,
    SourceUnavailable,
    ConstraintViolation,
    FactLoadError,
    ConfigurationError
)

__version__ = "1.0.0"
__author__ = "Data Engineering Team"

__all__ = [
    "SCDProcessor",
    "DimensionVersionManager",
    "ChangeDetector",
    "ChangeType",
    "DimensionalKeyResolver",
    "FactLoader",
    "DateDimensionGenerator",
    "ETLRunner",
    "RunReport",
    "RunStatus",
    "InMemoryWarehouse",
    "DeltaWarehouse",
    "InMemorySourceReader",
    "SparkSourceReader",
    "DimensionConfig",
    "FactConfig",
    "DateDimensionConfig",
    "MeasurePolicy",
    "ETLConfig",
    "load_config",
    "default_retail_config",
    "ETLError",
    "SCDValidationError",
    "SCDProcessingError",
    "InvariantViolation",
    "ResolutionError",
    "SourceUnavailable",
    "ConstraintViolation",
    "FactLoadError",
    "ConfigurationError"
]
