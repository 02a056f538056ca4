"""
Record types flowing between sources, stores and the ETL engine.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Dict, Hashable, Optional


OPEN_END_DATE = date(9999, 12, 31)


@dataclass(frozen=True)
class SourceEntity:
    """Current-state snapshot of one business entity as read from the source."""

    business_key: Hashable
    attributes: Dict[str, Any]
    passive_attributes: Dict[str, Any] = field(default_factory=dict)
    as_of_date: Optional[date] = None


@dataclass(frozen=True)
class DimensionVersion:
    """One SCD Type 2 version of a dimension member."""

    surrogate_key: int
    business_key: Hashable
    attributes: Dict[str, Any]
    version: int
    effective_date: date
    expiry_date: date = OPEN_END_DATE
    is_current: bool = True
    passive_attributes: Dict[str, Any] = field(default_factory=dict)
    scd_hash: str = ""

    def closed(self, expiry_date: date) -> "DimensionVersion":
        """Return a copy of this version closed at ``expiry_date``."""
        return replace(self, expiry_date=expiry_date, is_current=False)

    def covers(self, as_of: date) -> bool:
        """Whether ``as_of`` falls inside this version's validity window."""
        return self.effective_date <= as_of <= self.expiry_date

    def to_dict(self) -> Dict[str, Any]:
        return {
            "surrogate_key": self.surrogate_key,
            "business_key": self.business_key,
            "attributes": dict(self.attributes),
            "passive_attributes": dict(self.passive_attributes),
            "version": self.version,
            "effective_date": self.effective_date.isoformat(),
            "expiry_date": self.expiry_date.isoformat(),
            "is_current": self.is_current,
            "scd_hash": self.scd_hash,
        }


@dataclass(frozen=True)
class TransactionLine:
    """A pending transaction line carrying natural keys and raw measures."""

    natural_transaction_key: Hashable
    business_keys: Dict[str, Any]
    transaction_date: date
    measures: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FactRecord:
    """A resolved fact row ready to be appended to a fact store."""

    natural_transaction_key: Hashable
    date_key: int
    dimension_keys: Dict[str, int]
    measures: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        row = {"natural_transaction_key": self.natural_transaction_key, "date_key": self.date_key}
        row.update(self.dimension_keys)
        row.update(self.measures)
        return row


@dataclass(frozen=True)
class DateRow:
    """One row of the calendar dimension."""

    date_key: int
    full_date: date
    year: int
    quarter: int
    month: int
    month_name: str
    week: int
    day_of_week: int
    day_name: str
    is_weekend: bool
    is_holiday: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date_key": self.date_key,
            "full_date": self.full_date,
            "year": self.year,
            "quarter": self.quarter,
            "month": self.month,
            "month_name": self.month_name,
            "week": self.week,
            "day_of_week": self.day_of_week,
            "day_name": self.day_name,
            "is_weekend": self.is_weekend,
            "is_holiday": self.is_holiday,
        }


@dataclass(frozen=True)
class ResolutionFailure:
    """A fact line that could not be resolved and was skipped."""

    fact_name: str
    natural_transaction_key: Hashable
    role: str
    business_key: Any
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fact_name": self.fact_name,
            "natural_transaction_key": self.natural_transaction_key,
            "role": self.role,
            "business_key": self.business_key,
            "reason": self.reason,
        }
