"""
Unit tests for ETLRunner.
"""

import pytest
from datetime import date

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from libraries.star_schema_etl.pipeline.etl_runner import ETLRunner, RunReport, RunStatus
from libraries.star_schema_etl.storage.memory import InMemoryWarehouse
from libraries.star_schema_etl.sources.memory import InMemorySourceReader
from libraries.star_schema_etl.common.config import (
    DimensionConfig,
    ETLConfig,
    FactConfig,
    FactLoadMetrics,
    ProcessingMetrics
)
from libraries.star_schema_etl.common.exceptions import InvariantViolation


RUNNER = "libraries.star_schema_etl.pipeline.etl_runner"


@pytest.fixture
def config():
    """Configuration with one dimension and one fact."""
    return ETLConfig(
        dimensions=[DimensionConfig(name="store", business_key_column="store_id", tracked_columns=["store_name"])],
        facts=[FactConfig(name="sales", dimension_references={"store_key": "store"},
                          business_key_columns={"store_key": "store_id"}, natural_key_columns=["order_id"],
                          date_column="order_date", measure_columns=["quantity", "unit_price"])]
    )


@pytest.fixture
def reader():
    """Source reader with one store and no pending sales."""
    return InMemorySourceReader(
        entity_rows={"store": [{"store_id": 1, "store_name": "Downtown"}]},
        transaction_rows={"sales": []}
    )


class TestRunReport:
    """Test cases for RunReport."""

    def test_counts(self):
        """Test inserted, closed and skipped totals."""
        report = RunReport(
            as_of_date=date(2024, 1, 1),
            dimension_metrics={"store": ProcessingMetrics(new_records_created=2, new_versions_created=1,
                                                          versions_closed=1)},
            fact_metrics={"sales": FactLoadMetrics(facts_inserted=4, duplicates_in_batch=1, resolution_failures=2)}
        )

        assert report.inserted == 7
        assert report.closed == 1
        assert report.skipped == 3

    def test_aborted_reports_nothing_written(self):
        """Test an aborted run reports zero inserted and closed rows."""
        report = RunReport(
            as_of_date=date(2024, 1, 1),
            status=RunStatus.ABORTED,
            dimension_metrics={"store": ProcessingMetrics(new_records_created=2, versions_closed=1)}
        )

        assert report.is_success is False
        assert report.inserted == 0
        assert report.closed == 0


class TestETLRunner:
    """Test cases for ETLRunner."""

    def test_defaults_to_today(self, config, reader, mocker):
        """Test the run date defaults to today."""
        mock_date = mocker.patch(f"{RUNNER}.date")
        mock_date.today.return_value = date(2024, 5, 1)

        report = ETLRunner(config, InMemoryWarehouse.from_config(config), reader).run_full_etl()

        assert report.as_of_date == date(2024, 5, 1)
        assert report.status is RunStatus.SUCCESS

    def test_dimension_failure_aborts_with_step(self, config, reader, mocker):
        """Test a failing dimension aborts the run and names the step."""
        mocker.patch(f"{RUNNER}.SCDProcessor.process_scd",
                     side_effect=InvariantViolation("2 current versions", "store", 1))
        warehouse = InMemoryWarehouse.from_config(config)

        report = ETLRunner(config, warehouse, reader).run_full_etl(date(2024, 1, 1))

        assert report.status is RunStatus.ABORTED
        assert report.failed_step == "dimension:store"
        assert report.error_code == "INVARIANT_VIOLATION"
        assert warehouse.dimension("store").history() == []

    def test_unexpected_error_aborts(self, config, reader, mocker):
        """Test errors outside the library hierarchy also abort the run."""
        mocker.patch(f"{RUNNER}.DateDimensionGenerator.populate", side_effect=RuntimeError("disk full"))
        reader.transaction_rows["sales"] = [
            {"order_id": 1, "store_id": 1, "order_date": date(2024, 1, 1), "quantity": 1, "unit_price": 2}
        ]

        report = ETLRunner(config, InMemoryWarehouse.from_config(config), reader).run_full_etl(date(2024, 1, 1))

        assert report.status is RunStatus.ABORTED
        assert report.failed_step == "date_dimension"
        assert report.error == "disk full"
        assert report.error_code is None

    def test_no_calendar_range(self, config, reader):
        """Test the date dimension is left alone without a range or pending dates."""
        warehouse = InMemoryWarehouse.from_config(config)

        report = ETLRunner(config, warehouse, reader).run_full_etl(date(2024, 1, 1))

        assert report.date_rows_inserted == 0
        assert warehouse.dates.rows() == []

    def test_begin_failure_names_step(self, config, reader, mocker):
        """Test a warehouse that cannot open its transaction is reported at that step."""
        warehouse = InMemoryWarehouse.from_config(config)
        mocker.patch.object(warehouse, "_begin", side_effect=RuntimeError("Table or view not found: dim_store"))
        runner = ETLRunner(config, warehouse, reader)

        report = runner.run_full_etl(date(2024, 1, 1))

        assert report.status is RunStatus.ABORTED
        assert report.failed_step == "begin_transaction"
        assert "dim_store" in report.error

        mocker.patch.object(warehouse, "_begin", return_value=None)
        assert runner.run_full_etl(date(2024, 1, 1)).status is RunStatus.SUCCESS

    def test_lookup_cache_cleared_each_run(self, config, reader, mocker):
        """Test the runner keeps one lookup cache and clears it before facts load."""
        warehouse = InMemoryWarehouse.from_config(config)
        runner = ETLRunner(config, warehouse, reader)
        cache_manager = runner.cache_manager
        clear_spy = mocker.spy(cache_manager, "clear_cache")
        first_sale = {"order_id": 1, "store_id": 1, "order_date": date(2024, 1, 1), "quantity": 1, "unit_price": 2}
        second_sale = {"order_id": 2, "store_id": 1, "order_date": date(2024, 1, 2), "quantity": 1, "unit_price": 2}

        reader.transaction_rows["sales"] = [first_sale]
        runner.run_full_etl(date(2024, 1, 1))
        reader.entity_rows["store"] = [{"store_id": 1, "store_name": "Uptown"}]
        reader.transaction_rows["sales"] = [first_sale, second_sale]
        runner.run_full_etl(date(2024, 1, 2))

        assert runner.cache_manager is cache_manager
        assert clear_spy.call_count == 2
        current = warehouse.dimension("store").current_index()[1][0]
        assert current.version == 2
        first, second = warehouse.fact("sales").facts()
        assert first.dimension_keys["store_key"] == 1
        assert second.dimension_keys["store_key"] == current.surrogate_key == 2

    def test_deferred_change_is_partial_success(self, config, reader):
        """Test a same-day dimension change commits the run as a partial success."""
        warehouse = InMemoryWarehouse.from_config(config)
        runner = ETLRunner(config, warehouse, reader)
        runner.run_full_etl(date(2024, 1, 1))
        reader.entity_rows["store"] = [{"store_id": 1, "store_name": "Uptown"}]

        report = runner.run_full_etl(date(2024, 1, 1))

        assert report.status is RunStatus.PARTIAL_SUCCESS
        assert report.deferred == 1
        assert report.to_dict()["deferred"] == 1
