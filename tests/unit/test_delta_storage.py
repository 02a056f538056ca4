"""
Unit tests for the Delta stores with mocked Spark session and Delta tables.
"""

import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock, patch
from pyspark.sql import Row
from pyspark.sql.types import (
    StructType, StructField, StringType, IntegerType, LongType, DateType, BooleanType
)

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from libraries.star_schema_etl.storage.delta import (
    DeltaDimensionStore,
    DeltaFactStore,
    DeltaDateDimensionStore,
    DeltaWarehouse
)
from libraries.star_schema_etl.common.config import DimensionConfig, ETLConfig, FactConfig
from libraries.star_schema_etl.common.exceptions import ConstraintViolation
from libraries.star_schema_etl.common.records import DimensionVersion, FactRecord, OPEN_END_DATE


DELTA_TABLE = "libraries.star_schema_etl.storage.delta.DeltaTable"


@pytest.fixture
def dimension_config():
    """Create dimension configuration for testing."""
    return DimensionConfig(
        name="customer",
        business_key_column="customer_id",
        tracked_columns=["first_name"],
        passive_columns=["phone"],
        attribute_types={"customer_id": "INT"}
    )


@pytest.fixture
def sales_config():
    """Create sales fact configuration for testing."""
    return FactConfig(
        name="sales",
        dimension_references={"customer_key": "customer"},
        natural_key_columns=["order_id", "product_id"],
        column_types={"order_id": "INT", "product_id": "INT"}
    )


@pytest.fixture
def mock_spark():
    """Create mocked Spark session."""
    return MagicMock()


class TestDeltaDimensionStore:
    """Test cases for DeltaDimensionStore."""

    @pytest.fixture
    def table_schema(self):
        """Schema of dim_customer."""
        return StructType([
            StructField("customer_key", LongType(), True),
            StructField("customer_id", IntegerType(), True),
            StructField("first_name", StringType(), True),
            StructField("phone", StringType(), True),
            StructField("version", IntegerType(), True),
            StructField("effective_date", DateType(), True),
            StructField("expiry_date", DateType(), True),
            StructField("is_current", BooleanType(), True),
            StructField("scd_hash", StringType(), True)
        ])

    @pytest.fixture
    def store(self, mock_spark, dimension_config):
        """Create DeltaDimensionStore instance."""
        return DeltaDimensionStore(mock_spark, dimension_config)

    def test_create_table(self, store, mock_spark):
        """Test table DDL."""
        store.create_table_if_not_exists()

        mock_spark.sql.assert_called_once_with(
            "CREATE TABLE IF NOT EXISTS dim_customer (customer_key BIGINT, customer_id INT, first_name STRING, "
            "phone STRING, version INT, effective_date DATE, expiry_date DATE, is_current BOOLEAN, "
            "scd_hash STRING) USING DELTA"
        )

    def test_current_index_maps_rows(self, store, mock_spark):
        """Test current rows are mapped to versions."""
        mock_spark.sql.return_value.collect.return_value = [
            Row(customer_key=7, customer_id=1, first_name="John", phone="555-0100", version=2,
                effective_date=date(2024, 2, 1), expiry_date=OPEN_END_DATE, is_current=True, scd_hash="abc")
        ]

        index = store.current_index()

        assert "WHERE is_current = true" in mock_spark.sql.call_args[0][0]
        version = index[1][0]
        assert version.surrogate_key == 7
        assert version.attributes == {"first_name": "John"}
        assert version.passive_attributes == {"phone": "555-0100"}
        assert version.version == 2
        assert version.is_current is True

    def test_max_surrogate_key_of_empty_table(self, store, mock_spark):
        """Test an empty table starts from zero."""
        mock_spark.sql.return_value.collect.return_value = [Row(max_key=None)]

        assert store.max_surrogate_key() == 0

    def test_writes_are_staged_until_flush(self, store, mock_spark, table_schema):
        """Test closes are merged before new versions are appended."""
        mock_spark.table.return_value.schema = table_schema
        new_version = DimensionVersion(surrogate_key=8, business_key=1, attributes={"first_name": "Johnny"},
                                       passive_attributes={"phone": None}, version=2,
                                       effective_date=date(2024, 2, 1), scd_hash="def")

        with patch(DELTA_TABLE) as mock_delta_table:
            store.close_version(7, date(2024, 1, 31))
            store.append_versions([new_version])
            mock_delta_table.forName.assert_not_called()

            store.flush()

            merge = mock_delta_table.forName.return_value.alias.return_value.merge
            merge.assert_called_once()
            assert merge.call_args[0][1] == "target.customer_key = source.customer_key"
            merge.return_value.whenMatchedUpdate.assert_called_once_with(
                set={"expiry_date": "source.expiry_date", "is_current": "false"}
            )
            merge.return_value.whenMatchedUpdate.return_value.execute.assert_called_once()

        close_call, append_call = mock_spark.createDataFrame.call_args_list
        assert close_call[0] == ([(7, date(2024, 1, 31))], "customer_key BIGINT, expiry_date DATE")
        assert append_call[0][0] == [(8, 1, "Johnny", None, 2, date(2024, 2, 1), OPEN_END_DATE, True, "def")]
        mock_spark.createDataFrame.return_value.write.format.assert_called_with("delta")

    def test_read_flushes_pending_writes(self, store, mock_spark, table_schema):
        """Test reads see staged versions."""
        mock_spark.table.return_value.schema = table_schema
        mock_spark.sql.return_value.collect.return_value = []
        store.append_versions([DimensionVersion(surrogate_key=1, business_key=1, attributes={"first_name": "John"},
                                                version=1, effective_date=date(2024, 1, 1))])

        store.known_business_keys()

        mock_spark.createDataFrame.assert_called_once()
        assert store._pending_versions == []

    def test_discard(self, store, mock_spark):
        """Test discarded writes never reach the table."""
        store.close_version(7, date(2024, 1, 31))
        store.discard()
        store.flush()

        mock_spark.createDataFrame.assert_not_called()


class TestDeltaFactStore:
    """Test cases for DeltaFactStore."""

    def test_columns(self, mock_spark, sales_config):
        """Test fact table columns."""
        store = DeltaFactStore(mock_spark, sales_config)

        assert store.columns()[:4] == [
            ("order_id", "INT"), ("product_id", "INT"), ("date_key", "INT"), ("customer_key", "BIGINT")
        ]
        assert ("sales_amount", "DECIMAL(12,2)") in store.columns()

    def test_existing_natural_keys(self, mock_spark, sales_config):
        """Test composite natural keys are read back as tuples."""
        mock_spark.sql.return_value.collect.return_value = [Row(order_id=100, product_id=1)]

        keys = DeltaFactStore(mock_spark, sales_config).existing_natural_keys()

        assert keys == {(100, 1)}

    def test_to_row(self, mock_spark, sales_config):
        """Test fact records spread over the table columns."""
        store = DeltaFactStore(mock_spark, sales_config)
        fact = FactRecord(natural_transaction_key=(100, 1), date_key=20240115, dimension_keys={"customer_key": 21},
                          measures={"quantity": 2, "sales_amount": Decimal("10.00")})

        row = store._to_row(fact)

        assert row == {"order_id": 100, "product_id": 1, "date_key": 20240115, "customer_key": 21,
                       "quantity": 2, "sales_amount": Decimal("10.00")}


class TestDeltaDateDimensionStore:
    """Test cases for DeltaDateDimensionStore."""

    def test_existing_dates(self, mock_spark):
        """Test calendar dates are read from the table."""
        mock_spark.sql.return_value.collect.return_value = [Row(full_date=date(2024, 1, 1))]

        assert DeltaDateDimensionStore(mock_spark).existing_dates() == {date(2024, 1, 1)}


class TestDeltaWarehouse:
    """Test cases for DeltaWarehouse."""

    @pytest.fixture
    def config(self, dimension_config, sales_config):
        """ETL configuration for one dimension and one fact."""
        return ETLConfig(dimensions=[dimension_config], facts=[sales_config])

    def test_create_tables(self, mock_spark, config):
        """Test every table is created."""
        DeltaWarehouse(mock_spark, config).create_tables_if_not_exist()

        statements = [call[0][0] for call in mock_spark.sql.call_args_list]
        assert [statement.split(" (")[0] for statement in statements] == [
            "CREATE TABLE IF NOT EXISTS dim_date",
            "CREATE TABLE IF NOT EXISTS dim_customer",
            "CREATE TABLE IF NOT EXISTS fact_sales",
        ]

    def test_rollback_restores_versions(self, mock_spark, config):
        """Test tables changed during the transaction are restored."""
        mock_spark.sql.return_value.count.return_value = 0
        warehouse = DeltaWarehouse(mock_spark, config)

        with patch(DELTA_TABLE) as mock_delta_table:
            history = mock_delta_table.forName.return_value.history.return_value.select.return_value
            history.collect.return_value = [(5,)]

            with pytest.raises(RuntimeError):
                with warehouse.transaction():
                    history.collect.return_value = [(6,)]
                    raise RuntimeError("boom")

            restore = mock_delta_table.forName.return_value.restoreToVersion
            assert restore.call_count == 3
            restore.assert_called_with(5)

    def test_commit_flushes(self, mock_spark, config):
        """Test commit writes staged rows."""
        mock_spark.sql.return_value.count.return_value = 0
        warehouse = DeltaWarehouse(mock_spark, config)

        with patch(DELTA_TABLE) as mock_delta_table:
            mock_delta_table.forName.return_value.history.return_value.select.return_value.collect.return_value = [(1,)]
            with warehouse.transaction():
                warehouse.dimension("customer").close_version(7, date(2024, 1, 31))

            mock_delta_table.forName.return_value.restoreToVersion.assert_not_called()
            mock_delta_table.forName.return_value.alias.return_value.merge.assert_called_once()

    def test_verify_constraints_violation(self, mock_spark, config):
        """Test SQL checks that find rows raise ConstraintViolation."""
        mock_spark.sql.return_value.count.return_value = 1
        warehouse = DeltaWarehouse(mock_spark, config)

        with pytest.raises(ConstraintViolation) as exc_info:
            warehouse.verify_constraints()

        assert len(exc_info.value.violations) == 5
