"""
Utility functions for the star schema ETL library.
"""

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Hashable, Iterable, List, Optional, Tuple
import logging

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """
    Install a console handler on the library's root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
    """
    library_logger = logging.getLogger("libraries.star_schema_etl")
    library_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if not library_logger.handlers:
        console_handler = logging.StreamHandler()
        formatter = logging.Formatter('%(levelname)s:%(name)s:%(message)s')
        console_handler.setFormatter(formatter)
        library_logger.addHandler(console_handler)


def business_key_sort_key(business_key: Hashable) -> Tuple[int, Any]:
    """
    Stable ordering for business keys of mixed types.

    Numbers sort numerically, everything else by its string form.
    """
    if isinstance(business_key, bool):
        return (1, str(business_key))
    if isinstance(business_key, (int, float, Decimal)):
        return (0, business_key)
    if isinstance(business_key, tuple):
        return (2, tuple(business_key_sort_key(part) for part in business_key))
    return (1, str(business_key))


def to_date(value: Any) -> Optional[date]:
    """
    Coerce a date-like value to ``datetime.date``.

    Args:
        value: date, datetime or ISO-8601 string

    Returns:
        The calendar date, or None for None
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def to_decimal(value: Any) -> Decimal:
    """Convert a numeric value to Decimal without binary float artifacts."""
    if isinstance(value, Decimal):
        return value
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


def quantize_amount(value: Decimal, precision: Decimal = Decimal("0.01")) -> Decimal:
    """Round a monetary amount the way DECIMAL(10,2) columns store it."""
    return value.quantize(precision, rounding=ROUND_HALF_UP)


def date_key_for(value: date) -> int:
    """Date dimension key (yyyymmdd) for a calendar date."""
    return value.year * 10000 + value.month * 100 + value.day


def validate_business_keys(business_keys: Iterable[Hashable]) -> List[str]:
    """
    Validate business key values and return any issues.

    Args:
        business_keys: Business key values read from a source

    Returns:
        List of validation error messages
    """
    errors = []
    null_count = sum(1 for key in business_keys if key is None or key == "")
    if null_count > 0:
        errors.append(f"Found {null_count} null values in business key")
    return errors


def log_records_info(records: list, name: str) -> None:
    """
    Log record collection information for debugging.

    Args:
        records: Collection of records
        name: Name for logging
    """
    logger.info(f"{name} - Rows: {len(records)}")
    if records:
        logger.debug(f"{name} - Sample: {records[0]}")
