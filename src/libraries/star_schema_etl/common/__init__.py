"""
Common records, configurations and utilities for the star schema ETL library.
"""

from .config import (
    DimensionConfig,
    FactConfig,
    DateDimensionConfig,
    MeasurePolicy,
    ETLConfig,
    ProcessingMetrics,
    FactLoadMetrics,
    ValidationResult,
    load_config,
    default_retail_config
)
from .exceptions import (
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
from .records import (
    OPEN_END_DATE,
    SourceEntity,
    DimensionVersion,
    TransactionLine,
    FactRecord,
    DateRow,
    ResolutionFailure
)
from .utils import configure_logging, date_key_for

__all__ = [
    "DimensionConfig",
    "FactConfig",
    "DateDimensionConfig",
    "MeasurePolicy",
    "ETLConfig",
    "ProcessingMetrics",
    "FactLoadMetrics",
    "ValidationResult",
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
    "ConfigurationError",
    "OPEN_END_DATE",
    "SourceEntity",
    "DimensionVersion",
    "TransactionLine",
    "FactRecord",
    "DateRow",
    "ResolutionFailure",
    "configure_logging",
    "date_key_for"
]
