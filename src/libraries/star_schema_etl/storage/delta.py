"""
Delta Lake stores backed by Spark tables.
"""

from datetime import date
from typing import Any, Dict, Hashable, List, Optional, Set, Tuple
import logging

from pyspark.sql import DataFrame, SparkSession
from pyspark.sql.functions import col, lit
from delta.tables import DeltaTable

from ..common.config import DimensionConfig, ETLConfig, FactConfig
from ..common.exceptions import ConstraintViolation
from ..common.records import DateRow, DimensionVersion, FactRecord
from ..common.utils import business_key_sort_key, to_date
from .base import DateDimensionStore, DimensionStore, FactStore, Warehouse

logger = logging.getLogger(__name__)


SALES_MEASURE_TYPES = {
    "quantity": "INT",
    "unit_price": "DECIMAL(10,2)",
    "discount_amount": "DECIMAL(12,2)",
    "sales_amount": "DECIMAL(12,2)",
    "cost_amount": "DECIMAL(12,2)",
    "profit_amount": "DECIMAL(12,2)",
}

INVENTORY_MEASURE_TYPES = {
    "quantity_on_hand": "INT",
    "quantity_received": "INT",
    "quantity_sold": "INT",
    "quantity_on_order": "INT",
    "stock_value": "DECIMAL(12,2)",
}

DATE_DIMENSION_COLUMNS = [
    ("date_key", "INT"),
    ("full_date", "DATE"),
    ("year", "INT"),
    ("quarter", "INT"),
    ("month", "INT"),
    ("month_name", "STRING"),
    ("week", "INT"),
    ("day_of_week", "INT"),
    ("day_name", "STRING"),
    ("is_weekend", "BOOLEAN"),
    ("is_holiday", "BOOLEAN"),
]


class _DeltaTableMixin:
    """Shared table plumbing: DDL, staged appends, version bookkeeping."""

    spark: SparkSession
    table_name: str

    def columns(self) -> List[Tuple[str, str]]:
        raise NotImplementedError

    def create_table_if_not_exists(self) -> None:
        column_ddl = ", ".join(f"{name} {data_type}" for name, data_type in self.columns())
        self.spark.sql(f"CREATE TABLE IF NOT EXISTS {self.table_name} ({column_ddl}) USING DELTA")
        logger.info(f"Ensured Delta table {self.table_name}")

    def table_version(self) -> int:
        history = DeltaTable.forName(self.spark, self.table_name).history(1)
        return history.select("version").collect()[0][0]

    def restore(self, version: int) -> None:
        if self.table_version() != version:
            DeltaTable.forName(self.spark, self.table_name).restoreToVersion(version)
            logger.info(f"Restored {self.table_name} to version {version}")

    def _append_rows(self, rows: List[Dict[str, Any]]) -> None:
        if not rows:
            return
        schema = self.spark.table(self.table_name).schema
        data = [tuple(row.get(field.name) for field in schema.fields) for row in rows]
        append_df = self.spark.createDataFrame(data, schema)
        append_df.write.format("delta").mode("append").saveAsTable(self.table_name)
        logger.info(f"Appended {len(rows)} rows to {self.table_name}")

    def _select(self, query: str) -> list:
        self.flush()
        return self.spark.sql(query).collect()

    def flush(self) -> None:
        raise NotImplementedError

    def discard(self) -> None:
        raise NotImplementedError


class DeltaDimensionStore(_DeltaTableMixin, DimensionStore):
    """
    SCD Type 2 dimension stored in a Delta table.

    Closes and appends are staged and written at the next read or at commit;
    closes are merged before appends so a key never has two current rows.
    """

    def __init__(self, spark: SparkSession, config: DimensionConfig):
        super().__init__(config)
        self.spark = spark
        self.table_name = config.target_table
        self._pending_closes: List[Tuple[int, date]] = []
        self._pending_versions: List[DimensionVersion] = []

    def columns(self) -> List[Tuple[str, str]]:
        types = self.config.attribute_types
        columns = [
            (self.config.surrogate_key_column, "BIGINT"),
            (self.config.business_key_column, types.get(self.config.business_key_column, "STRING")),
        ]
        for column in self.config.tracked_columns + self.config.passive_columns:
            columns.append((column, types.get(column, "STRING")))
        columns.extend([
            (self.config.version_column, "INT"),
            (self.config.effective_date_column, "DATE"),
            (self.config.expiry_date_column, "DATE"),
            (self.config.is_current_column, "BOOLEAN"),
            (self.config.scd_hash_column, "STRING"),
        ])
        return columns

    def current_index(self) -> Dict[Hashable, List[DimensionVersion]]:
        rows = self._select(f"SELECT * FROM {self.table_name} WHERE {self.config.is_current_column} = true")
        index: Dict[Hashable, List[DimensionVersion]] = {}
        for row in rows:
            version = self._to_version(row.asDict())
            index.setdefault(version.business_key, []).append(version)
        return index

    def known_business_keys(self) -> Set[Hashable]:
        rows = self._select(f"SELECT DISTINCT {self.config.business_key_column} FROM {self.table_name}")
        return {row[0] for row in rows}

    def history(self, business_key: Optional[Hashable] = None) -> List[DimensionVersion]:
        self.flush()
        history_df = self.spark.table(self.table_name)
        if business_key is not None:
            history_df = history_df.filter(col(self.config.business_key_column) == lit(business_key))
        versions = [self._to_version(row.asDict()) for row in history_df.collect()]
        return sorted(versions, key=lambda v: (business_key_sort_key(v.business_key), v.version))

    def max_surrogate_key(self) -> int:
        rows = self._select(f"SELECT MAX({self.config.surrogate_key_column}) AS max_key FROM {self.table_name}")
        return rows[0]["max_key"] or 0

    def close_version(self, surrogate_key: int, expiry_date: date) -> None:
        self._pending_closes.append((surrogate_key, expiry_date))

    def append_versions(self, versions: List[DimensionVersion]) -> None:
        self._pending_versions.extend(versions)

    def flush(self) -> None:
        if self._pending_closes:
            self._merge_closes(self._pending_closes)
            self._pending_closes = []
        if self._pending_versions:
            self._append_rows([self._to_row(version) for version in self._pending_versions])
            self._pending_versions = []

    def discard(self) -> None:
        self._pending_closes = []
        self._pending_versions = []

    def _merge_closes(self, closes: List[Tuple[int, date]]) -> None:
        sk = self.config.surrogate_key_column
        expiry = self.config.expiry_date_column
        updates_df = self.spark.createDataFrame(closes, f"{sk} BIGINT, {expiry} DATE")

        (DeltaTable.forName(self.spark, self.table_name).alias("target")
         .merge(updates_df.alias("source"), f"target.{sk} = source.{sk}")
         .whenMatchedUpdate(set={
             expiry: f"source.{expiry}",
             self.config.is_current_column: "false",
         })
         .execute())
        logger.info(f"Closed {len(closes)} versions in {self.table_name}")

    def _to_row(self, version: DimensionVersion) -> Dict[str, Any]:
        row = {
            self.config.surrogate_key_column: version.surrogate_key,
            self.config.business_key_column: version.business_key,
            self.config.version_column: version.version,
            self.config.effective_date_column: version.effective_date,
            self.config.expiry_date_column: version.expiry_date,
            self.config.is_current_column: version.is_current,
            self.config.scd_hash_column: version.scd_hash,
        }
        row.update(version.attributes)
        row.update(version.passive_attributes)
        return row

    def _to_version(self, row: Dict[str, Any]) -> DimensionVersion:
        return DimensionVersion(
            surrogate_key=row[self.config.surrogate_key_column],
            business_key=row[self.config.business_key_column],
            attributes={column: row.get(column) for column in self.config.tracked_columns},
            passive_attributes={column: row.get(column) for column in self.config.passive_columns},
            version=row[self.config.version_column],
            effective_date=to_date(row[self.config.effective_date_column]),
            expiry_date=to_date(row[self.config.expiry_date_column]),
            is_current=bool(row[self.config.is_current_column]),
            scd_hash=row.get(self.config.scd_hash_column) or "",
        )


class DeltaFactStore(_DeltaTableMixin, FactStore):
    """Fact table stored in Delta; one column per natural key part, dimension role and measure."""

    def __init__(self, spark: SparkSession, config: FactConfig):
        super().__init__(config)
        self.spark = spark
        self.table_name = config.target_table
        self._pending: List[FactRecord] = []

    @property
    def measure_types(self) -> Dict[str, str]:
        return INVENTORY_MEASURE_TYPES if self.config.is_inventory else SALES_MEASURE_TYPES

    def columns(self) -> List[Tuple[str, str]]:
        types = self.config.column_types
        columns = [(column, types.get(column, "BIGINT")) for column in self.config.natural_key_columns]
        columns.append((self.config.date_key_column, "INT"))
        columns.extend((role, "BIGINT") for role in self.config.dimension_references)
        columns.extend(self.measure_types.items())
        return columns

    def existing_natural_keys(self) -> Set[Hashable]:
        key_columns = ", ".join(self.config.natural_key_columns)
        rows = self._select(f"SELECT {key_columns} FROM {self.table_name}")
        return {self._natural_key(row) for row in rows}

    def append_facts(self, facts: List[FactRecord]) -> None:
        self._pending.extend(facts)

    def facts(self) -> List[FactRecord]:
        rows = self._select(f"SELECT * FROM {self.table_name}")
        return [self._to_fact(row) for row in rows]

    def flush(self) -> None:
        if self._pending:
            self._append_rows([self._to_row(fact) for fact in self._pending])
            self._pending = []

    def discard(self) -> None:
        self._pending = []

    def _natural_key(self, row) -> Hashable:
        values = tuple(row[column] for column in self.config.natural_key_columns)
        return values[0] if len(values) == 1 else values

    def _to_row(self, fact: FactRecord) -> Dict[str, Any]:
        row = dict(zip(self.config.natural_key_columns,
                       self.config.natural_key_values(fact.natural_transaction_key)))
        row[self.config.date_key_column] = fact.date_key
        row.update(fact.dimension_keys)
        row.update(fact.measures)
        return row

    def _to_fact(self, row) -> FactRecord:
        values = row.asDict()
        return FactRecord(
            natural_transaction_key=self._natural_key(values),
            date_key=values[self.config.date_key_column],
            dimension_keys={role: values[role] for role in self.config.dimension_references},
            measures={name: values[name] for name in self.measure_types},
        )


class DeltaDateDimensionStore(_DeltaTableMixin, DateDimensionStore):
    """Calendar dimension stored in Delta."""

    def __init__(self, spark: SparkSession, table_name: str = "dim_date"):
        self.spark = spark
        self.table_name = table_name
        self._pending: List[DateRow] = []

    def columns(self) -> List[Tuple[str, str]]:
        return list(DATE_DIMENSION_COLUMNS)

    def existing_dates(self) -> Set[date]:
        rows = self._select(f"SELECT full_date FROM {self.table_name}")
        return {to_date(row[0]) for row in rows}

    def append_rows(self, rows: List[DateRow]) -> None:
        self._pending.extend(rows)

    def rows(self) -> List[DateRow]:
        rows = self._select(f"SELECT * FROM {self.table_name} ORDER BY full_date")
        return [DateRow(**row.asDict()) for row in rows]

    def flush(self) -> None:
        if self._pending:
            self._append_rows([row.to_dict() for row in self._pending])
            self._pending = []

    def discard(self) -> None:
        self._pending = []


class DeltaWarehouse(Warehouse):
    """
    Star schema in Delta tables.

    Delta commits are per table, so the unit of work records every table's
    version on entry and restores them all on rollback.
    """

    def __init__(self, spark: SparkSession, config: ETLConfig):
        super().__init__(
            dimensions={dimension.name: DeltaDimensionStore(spark, dimension) for dimension in config.dimensions},
            facts={fact.name: DeltaFactStore(spark, fact) for fact in config.facts},
            dates=DeltaDateDimensionStore(spark, config.date_dimension.target_table),
        )
        self.spark = spark
        self.config = config
        self._versions: Dict[str, int] = {}

        logger.info(f"Initialized DeltaWarehouse with {len(self.dimensions)} dimensions and {len(self.facts)} facts")

    def _stores(self) -> List[_DeltaTableMixin]:
        return [self.dates] + list(self.dimensions.values()) + list(self.facts.values())

    def create_tables_if_not_exist(self) -> None:
        """Create every dimension, fact and calendar table that does not exist yet."""
        for store in self._stores():
            store.create_table_if_not_exists()

    def _begin(self) -> None:
        self._versions = {store.table_name: store.table_version() for store in self._stores()}
        logger.info(f"Recorded table versions: {self._versions}")

    def _commit(self) -> None:
        for store in self._stores():
            store.flush()
        self._versions = {}

    def _rollback(self) -> None:
        for store in self._stores():
            store.discard()
        for store in self._stores():
            version = self._versions.get(store.table_name)
            if version is not None:
                store.restore(version)
        self._versions = {}

    def verify_constraints(self) -> None:
        """
        Check uniqueness and foreign-key rules with SQL over the flushed tables.

        Raises:
            ConstraintViolation: If any rule is broken
        """
        for store in self._stores():
            store.flush()

        violations = []
        for name, store in self.dimensions.items():
            dimension = store.config
            duplicates = self._count(f"""
                SELECT {dimension.business_key_column} FROM {dimension.target_table}
                WHERE {dimension.is_current_column} = true
                GROUP BY {dimension.business_key_column} HAVING COUNT(*) > 1
            """)
            if duplicates:
                violations.append(f"dimension '{name}' has {duplicates} business keys with several current versions")
            duplicates = self._count(f"""
                SELECT {dimension.surrogate_key_column} FROM {dimension.target_table}
                GROUP BY {dimension.surrogate_key_column} HAVING COUNT(*) > 1
            """)
            if duplicates:
                violations.append(f"dimension '{name}' has {duplicates} duplicate surrogate keys")

        for name, store in self.facts.items():
            fact = store.config
            key_columns = ", ".join(fact.natural_key_columns)
            duplicates = self._count(f"""
                SELECT {key_columns} FROM {fact.target_table}
                GROUP BY {key_columns} HAVING COUNT(*) > 1
            """)
            if duplicates:
                violations.append(f"fact '{name}' has {duplicates} duplicate natural transaction keys")

            orphans = self._count(f"""
                SELECT f.{fact.date_key_column} FROM {fact.target_table} f
                LEFT ANTI JOIN {self.dates.table_name} d ON f.{fact.date_key_column} = d.date_key
            """)
            if orphans:
                violations.append(f"fact '{name}' has {orphans} rows with a missing date_key")

            for role, dimension_name in fact.dimension_references.items():
                dimension = self.dimensions[dimension_name].config
                orphans = self._count(f"""
                    SELECT f.{role} FROM {fact.target_table} f
                    LEFT ANTI JOIN {dimension.target_table} d ON f.{role} = d.{dimension.surrogate_key_column}
                """)
                if orphans:
                    violations.append(f"fact '{name}' has {orphans} rows with a missing {role}")

        if violations:
            raise ConstraintViolation(f"{len(violations)} constraint violation(s): {violations}", violations)

    def _count(self, query: str) -> int:
        result: DataFrame = self.spark.sql(query)
        return result.count()
