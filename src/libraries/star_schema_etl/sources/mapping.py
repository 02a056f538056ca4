"""
Row to record mapping shared by the source readers.
"""

from typing import Any, Hashable, List, Mapping

from ..common.config import DimensionConfig, FactConfig
from ..common.records import SourceEntity, TransactionLine
from ..common.utils import to_date


def _key(row: Mapping[str, Any], columns: List[str]) -> Hashable:
    values = tuple(row.get(column) for column in columns)
    return values[0] if len(values) == 1 else values


def entity_from_row(config: DimensionConfig, row: Mapping[str, Any]) -> SourceEntity:
    """
    Map one source row to a SourceEntity.

    Tracked columns absent from the row are left out so validation can
    report them.
    """
    as_of_date = None
    if config.as_of_column:
        as_of_date = to_date(row.get(config.as_of_column))

    return SourceEntity(
        business_key=row.get(config.business_key_column),
        attributes={column: row[column] for column in config.tracked_columns if column in row},
        passive_attributes={column: row.get(column) for column in config.passive_columns},
        as_of_date=as_of_date,
    )


def transaction_from_row(config: FactConfig, row: Mapping[str, Any]) -> TransactionLine:
    """Map one source row to a pending TransactionLine."""
    return TransactionLine(
        natural_transaction_key=_key(row, config.line_key_columns),
        business_keys={role: row.get(column) for role, column in config.business_key_columns.items()},
        transaction_date=to_date(row.get(config.date_column)),
        measures={column: row.get(column) for column in config.measure_columns},
    )
