"""
Configuration classes for the star schema ETL library.
"""

from dataclasses import dataclass, field, asdict
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Dict, Any
import json
import logging

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class DeduplicationStrategy(Enum):
    """Enumeration of available source deduplication strategies."""
    LATEST = "latest"
    EARLIEST = "earliest"


class ResolutionMode(Enum):
    """Which dimension version a fact line is attached to."""
    AS_OF_LOAD = "as_of_load"
    AS_OF_TRANSACTION = "as_of_transaction"


class FactType(Enum):
    """Supported fact table shapes."""
    SALES = "sales"
    INVENTORY = "inventory"


def _parse_date(value) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


@dataclass
class DimensionConfig:
    """Configuration for one SCD Type 2 dimension."""

    # Required parameters
    name: str
    business_key_column: str
    tracked_columns: List[str]

    # Optional parameters
    surrogate_key_column: Optional[str] = None
    passive_columns: List[str] = field(default_factory=list)
    target_table: Optional[str] = None
    source_query: Optional[str] = None
    as_of_column: Optional[str] = None
    initial_effective_date: Optional[date] = None
    attribute_types: Dict[str, str] = field(default_factory=dict)

    # Standard column names
    version_column: str = "version"
    effective_date_column: str = "effective_date"
    expiry_date_column: str = "expiry_date"
    is_current_column: str = "is_current"
    scd_hash_column: str = "scd_hash"

    # Processing settings
    enable_source_deduplication: bool = True
    deduplication_strategy: str = "latest"
    hash_algorithm: str = "sha256"
    verify_history: bool = True

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.name:
            raise ValueError("name is required")
        if not self.business_key_column:
            raise ValueError("business_key_column is required")
        if not self.tracked_columns:
            raise ValueError("tracked_columns cannot be empty")
        overlap = set(self.tracked_columns) & set(self.passive_columns)
        if overlap:
            raise ValueError(f"columns cannot be both tracked and passive: {sorted(overlap)}")
        valid_strategies = [strategy.value for strategy in DeduplicationStrategy]
        if self.deduplication_strategy not in valid_strategies:
            raise ValueError(f"deduplication_strategy must be one of {valid_strategies}")
        if self.hash_algorithm.lower() not in ("sha256", "md5"):
            raise ValueError(f"Unsupported hash algorithm: {self.hash_algorithm}")
        if self.surrogate_key_column is None:
            self.surrogate_key_column = f"{self.name}_key"
        if self.target_table is None:
            self.target_table = f"dim_{self.name}"
        self.initial_effective_date = _parse_date(self.initial_effective_date)


@dataclass
class FactConfig:
    """Configuration for one fact table and its pending transaction feed."""

    # Required parameters
    name: str
    dimension_references: Dict[str, str]
    natural_key_columns: List[str]

    # Optional parameters
    fact_type: str = "sales"
    business_key_columns: Dict[str, str] = field(default_factory=dict)
    line_key_columns: List[str] = field(default_factory=list)
    date_column: str = "transaction_date"
    measure_columns: List[str] = field(default_factory=list)
    target_table: Optional[str] = None
    source_query: Optional[str] = None
    date_key_column: str = "date_key"
    valuation_role: str = "product_key"
    valuation_attribute: str = "unit_price"
    column_types: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.name:
            raise ValueError("name is required")
        if not self.dimension_references:
            raise ValueError("dimension_references cannot be empty")
        if not self.natural_key_columns:
            raise ValueError("natural_key_columns cannot be empty")
        valid_types = [fact_type.value for fact_type in FactType]
        if self.fact_type not in valid_types:
            raise ValueError(f"fact_type must be one of {valid_types}")
        if self.fact_type == FactType.INVENTORY.value:
            if len(self.natural_key_columns) != 1 + len(self.dimension_references):
                raise ValueError("inventory natural_key_columns must be the date column followed by one column per dimension reference")
            if self.valuation_role not in self.dimension_references:
                raise ValueError(f"valuation_role '{self.valuation_role}' is not a dimension reference")
        if not self.business_key_columns:
            self.business_key_columns = {role: role for role in self.dimension_references}
        if not self.line_key_columns:
            self.line_key_columns = list(self.natural_key_columns)
        if self.target_table is None:
            self.target_table = f"fact_{self.name}"

    @property
    def is_inventory(self) -> bool:
        return self.fact_type == FactType.INVENTORY.value

    def natural_key_values(self, natural_key) -> tuple:
        """Spread a natural transaction key over ``natural_key_columns``."""
        if len(self.natural_key_columns) == 1:
            return (natural_key,)
        return tuple(natural_key)


@dataclass
class MeasurePolicy:
    """Domain policy constants for derived measures."""

    cost_ratio: Decimal = Decimal("0.7")
    margin_ratio: Decimal = Decimal("0.3")
    amount_precision: Decimal = Decimal("0.01")

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.cost_ratio = Decimal(str(self.cost_ratio))
        self.margin_ratio = Decimal(str(self.margin_ratio))
        self.amount_precision = Decimal(str(self.amount_precision))
        for name in ("cost_ratio", "margin_ratio"):
            value = getattr(self, name)
            if value < 0 or value > 1:
                raise ValueError(f"{name} must be between 0 and 1")


@dataclass
class DateDimensionConfig:
    """Configuration for the calendar dimension."""

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    target_table: str = "dim_date"
    holidays: List[date] = field(default_factory=list)

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.start_date = _parse_date(self.start_date)
        self.end_date = _parse_date(self.end_date)
        self.holidays = [_parse_date(holiday) for holiday in self.holidays]
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")


@dataclass
class ETLConfig:
    """Top-level configuration for a full ETL run."""

    dimensions: List[DimensionConfig]
    facts: List[FactConfig] = field(default_factory=list)
    date_dimension: DateDimensionConfig = field(default_factory=DateDimensionConfig)
    measure_policy: MeasurePolicy = field(default_factory=MeasurePolicy)
    resolution_mode: str = "as_of_load"
    strict_resolution: bool = False

    # Lookup caching
    enable_caching: bool = True
    cache_ttl_minutes: int = 60

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.cache_ttl_minutes <= 0:
            raise ValueError("cache_ttl_minutes must be positive")
        valid_modes = [mode.value for mode in ResolutionMode]
        if self.resolution_mode not in valid_modes:
            raise ValueError(f"resolution_mode must be one of {valid_modes}")
        names = [dimension.name for dimension in self.dimensions]
        if len(names) != len(set(names)):
            raise ValueError("dimension names must be unique")
        for fact in self.facts:
            unknown = set(fact.dimension_references.values()) - set(names)
            if unknown:
                raise ValueError(f"fact '{fact.name}' references unknown dimensions: {sorted(unknown)}")

    def dimension(self, name: str) -> DimensionConfig:
        for dimension in self.dimensions:
            if dimension.name == name:
                return dimension
        raise KeyError(name)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ETLConfig":
        """Build a configuration from a plain (JSON-decoded) dictionary."""
        try:
            return cls(
                dimensions=[DimensionConfig(**item) for item in data.get("dimensions", [])],
                facts=[FactConfig(**item) for item in data.get("facts", [])],
                date_dimension=DateDimensionConfig(**data.get("date_dimension", {})),
                measure_policy=MeasurePolicy(**data.get("measure_policy", {})),
                resolution_mode=data.get("resolution_mode", "as_of_load"),
                strict_resolution=data.get("strict_resolution", False),
                enable_caching=data.get("enable_caching", True),
                cache_ttl_minutes=data.get("cache_ttl_minutes", 60),
            )
        except (TypeError, ValueError) as e:
            logger.error(f"Invalid ETL configuration: {str(e)}")
            raise ConfigurationError(f"Invalid ETL configuration: {str(e)}")


def load_config(path: str) -> ETLConfig:
    """
    Load an ETL configuration from a JSON file.

    Args:
        path: Path to the JSON configuration file

    Returns:
        Validated ETLConfig
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read configuration file {path}: {str(e)}")

    logger.info(f"Loaded ETL configuration from {path}")
    return ETLConfig.from_dict(data)


def default_retail_config() -> ETLConfig:
    """Star schema for the retail OLTP system: four dimensions, sales and inventory facts."""
    dimensions = [
        DimensionConfig(
            name="product",
            business_key_column="product_id",
            tracked_columns=["product_name", "category_name", "unit_price"],
            attribute_types={"product_id": "INT", "unit_price": "DECIMAL(10,2)"},
            source_query="""
                SELECT p.product_id, p.product_name, c.category_name, p.unit_price
                FROM products p
                JOIN categories c ON p.category_id = c.category_id
            """,
        ),
        DimensionConfig(
            name="customer",
            business_key_column="customer_id",
            tracked_columns=["first_name", "last_name", "email", "city", "state", "country", "postal_code"],
            passive_columns=["phone"],
            attribute_types={"customer_id": "INT"},
            source_query="""
                SELECT customer_id, first_name, last_name, email, phone,
                       city, state, country, postal_code
                FROM customers
            """,
        ),
        DimensionConfig(
            name="employee",
            business_key_column="employee_id",
            tracked_columns=["first_name", "last_name", "title", "supervisor_id"],
            passive_columns=["hire_date"],
            attribute_types={"employee_id": "INT", "supervisor_id": "INT", "hire_date": "DATE"},
            source_query="""
                SELECT employee_id, first_name, last_name, title,
                       reports_to AS supervisor_id, hire_date
                FROM employees
            """,
        ),
        DimensionConfig(
            name="store",
            business_key_column="store_id",
            tracked_columns=["store_name", "manager_id", "city", "state", "country", "postal_code"],
            attribute_types={"store_id": "INT", "manager_id": "INT"},
            source_query="""
                SELECT store_id, store_name, manager_id, city, state, country, postal_code
                FROM stores
            """,
        ),
    ]
    facts = [
        FactConfig(
            name="sales",
            fact_type="sales",
            dimension_references={
                "product_key": "product",
                "customer_key": "customer",
                "employee_key": "employee",
                "store_key": "store",
            },
            business_key_columns={
                "product_key": "product_id",
                "customer_key": "customer_id",
                "employee_key": "employee_id",
                "store_key": "store_id",
            },
            natural_key_columns=["order_id", "product_id"],
            column_types={"order_id": "INT", "product_id": "INT"},
            date_column="order_date",
            measure_columns=["quantity", "unit_price", "discount"],
            source_query="""
                SELECT o.order_id, od.product_id, o.customer_id, o.employee_id, o.store_id,
                       CAST(o.order_date AS DATE) AS order_date,
                       od.quantity, od.unit_price, od.discount
                FROM orders o
                JOIN order_details od ON o.order_id = od.order_id
            """,
        ),
        FactConfig(
            name="inventory",
            fact_type="inventory",
            dimension_references={"product_key": "product", "store_key": "store"},
            business_key_columns={"product_key": "product_id", "store_key": "store_id"},
            natural_key_columns=["inventory_date", "product_id", "store_id"],
            column_types={"inventory_date": "DATE", "product_id": "INT", "store_id": "INT"},
            line_key_columns=["transaction_id"],
            date_column="transaction_date",
            measure_columns=["transaction_type", "quantity"],
            source_query="""
                SELECT transaction_id, product_id, store_id, transaction_type, quantity,
                       CAST(transaction_date AS DATE) AS transaction_date
                FROM inventory_transactions
            """,
        ),
    ]
    return ETLConfig(
        dimensions=dimensions,
        facts=facts,
        date_dimension=DateDimensionConfig(start_date=date(2020, 1, 1), end_date=date(2025, 12, 31)),
    )


@dataclass
class ProcessingMetrics:
    """Metrics for one dimension load."""

    dimension: str = ""
    records_processed: int = 0
    new_records_created: int = 0
    versions_closed: int = 0
    new_versions_created: int = 0
    unchanged_records: int = 0
    deferred_changes: int = 0
    close_failures: int = 0
    duplicates_removed: int = 0
    processing_time_seconds: float = 0.0

    @property
    def rows_inserted(self) -> int:
        return self.new_records_created + self.new_versions_created

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary."""
        return asdict(self)


@dataclass
class FactLoadMetrics:
    """Metrics for one fact load."""

    fact: str = ""
    lines_pending: int = 0
    already_loaded: int = 0
    duplicates_in_batch: int = 0
    resolution_failures: int = 0
    facts_inserted: int = 0
    processing_time_seconds: float = 0.0

    @property
    def rows_skipped(self) -> int:
        return self.duplicates_in_batch + self.resolution_failures

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary."""
        return asdict(self)


@dataclass
class ValidationResult:
    """Result of data validation."""

    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, error: str) -> None:
        """Add an error message."""
        self.errors.append(error)
        self.is_valid = False

    def add_warning(self, warning: str) -> None:
        """Add a warning message."""
        self.warnings.append(warning)

    def to_dict(self) -> Dict[str, Any]:
        """Convert validation result to dictionary."""
        return {
            "is_valid": self.is_valid,
            "errors": self.errors,
            "warnings": self.warnings
        }
