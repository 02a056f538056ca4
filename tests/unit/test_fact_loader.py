"""
Unit tests for FactLoader.
"""

import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import Mock

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from libraries.star_schema_etl.fact_loading.fact_loader import FactLoader
from libraries.star_schema_etl.key_resolution.key_resolver import DimensionalKeyResolver
from libraries.star_schema_etl.date_dimension.generator import DateDimensionGenerator
from libraries.star_schema_etl.storage.memory import (
    InMemoryDimensionStore,
    InMemoryFactStore,
    InMemoryDateDimensionStore
)
from libraries.star_schema_etl.common.config import DimensionConfig, FactConfig
from libraries.star_schema_etl.common.exceptions import FactLoadError, ResolutionError
from libraries.star_schema_etl.common.records import DimensionVersion, TransactionLine


class TestFactLoader:
    """Test cases for FactLoader."""

    @pytest.fixture
    def product_config(self):
        """Create product dimension configuration."""
        return DimensionConfig(name="product", business_key_column="product_id",
                               tracked_columns=["product_name", "unit_price"])

    @pytest.fixture
    def customer_config(self):
        """Create customer dimension configuration."""
        return DimensionConfig(name="customer", business_key_column="customer_id",
                               tracked_columns=["first_name"])

    @pytest.fixture
    def sales_config(self):
        """Create sales fact configuration."""
        return FactConfig(
            name="sales",
            dimension_references={"product_key": "product", "customer_key": "customer"},
            business_key_columns={"product_key": "product_id", "customer_key": "customer_id"},
            natural_key_columns=["order_id", "product_id"],
            date_column="order_date",
            measure_columns=["quantity", "unit_price", "discount"]
        )

    @pytest.fixture
    def resolvers(self, product_config, customer_config):
        """Resolvers over one product and one customer."""
        products = InMemoryDimensionStore(product_config, [
            DimensionVersion(surrogate_key=11, business_key=1,
                             attributes={"product_name": "Widget", "unit_price": Decimal("5.00")},
                             version=1, effective_date=date(2024, 1, 1))
        ])
        customers = InMemoryDimensionStore(customer_config, [
            DimensionVersion(surrogate_key=21, business_key=5, attributes={"first_name": "John"},
                             version=1, effective_date=date(2024, 1, 1))
        ])
        return {
            "product_key": DimensionalKeyResolver(product_config, products),
            "customer_key": DimensionalKeyResolver(customer_config, customers),
        }

    @pytest.fixture
    def dates(self):
        """Calendar for January 2024."""
        store = InMemoryDateDimensionStore()
        DateDimensionGenerator().populate(store, date(2024, 1, 1), date(2024, 1, 31))
        return store

    @pytest.fixture
    def fact_store(self, sales_config):
        """Create an empty sales fact store."""
        return InMemoryFactStore(sales_config)

    @pytest.fixture
    def loader(self, sales_config, fact_store, resolvers, dates):
        """Create FactLoader instance."""
        return FactLoader(sales_config, fact_store, resolvers, dates)

    @staticmethod
    def _line(order_id, product_id=1, customer_id=5, day=date(2024, 1, 15), quantity=2):
        return TransactionLine(
            natural_transaction_key=(order_id, product_id),
            business_keys={"product_key": product_id, "customer_key": customer_id},
            transaction_date=day,
            measures={"quantity": quantity, "unit_price": Decimal("5.00"), "discount": Decimal("0")}
        )

    def test_load_resolves_keys(self, loader, fact_store):
        """Test resolved lines are inserted with surrogate and date keys."""
        result = loader.load([self._line(100)])

        assert result.metrics.facts_inserted == 1
        fact = fact_store.facts()[0]
        assert fact.natural_transaction_key == (100, 1)
        assert fact.date_key == 20240115
        assert fact.dimension_keys == {"product_key": 11, "customer_key": 21}
        assert fact.measures["sales_amount"] == Decimal("10.00")

    def test_rerun_inserts_nothing(self, loader, fact_store):
        """Test already loaded natural keys are skipped."""
        loader.load([self._line(100), self._line(101)])

        result = loader.load([self._line(100), self._line(101)])

        assert result.metrics.facts_inserted == 0
        assert result.metrics.already_loaded == 2
        assert len(fact_store.facts()) == 2

    def test_in_batch_duplicates_first_wins(self, loader, fact_store):
        """Test only the first line per natural key is loaded."""
        result = loader.load([self._line(100, quantity=2), self._line(100, quantity=9)])

        assert result.metrics.facts_inserted == 1
        assert result.metrics.duplicates_in_batch == 1
        assert fact_store.facts()[0].measures["quantity"] == 2

    def test_unresolved_reference_skipped(self, loader, fact_store):
        """Test a line with an unknown business key is reported, not loaded."""
        result = loader.load([self._line(100, customer_id=99), self._line(101)])

        assert result.metrics.facts_inserted == 1
        assert result.metrics.resolution_failures == 1
        assert len(result.failures) == 1
        failure = result.failures[0]
        assert failure.natural_transaction_key == (100, 1)
        assert failure.role == "customer_key"
        assert failure.business_key == 99
        assert [fact.natural_transaction_key for fact in fact_store.facts()] == [(101, 1)]

    def test_missing_date_skipped(self, loader):
        """Test a date outside the calendar is a resolution failure."""
        result = loader.load([self._line(100, day=date(2024, 3, 1))])

        assert result.metrics.facts_inserted == 0
        assert result.failures[0].role == "date_key"

    def test_missing_transaction_date(self, loader):
        """Test a line without a date is reported."""
        result = loader.load([self._line(100, day=None)])

        assert result.metrics.resolution_failures == 1
        assert result.failures[0].reason == "missing transaction date"

    def test_strict_resolution_raises(self, sales_config, fact_store, resolvers, dates):
        """Test strict mode raises ResolutionError and inserts nothing."""
        loader = FactLoader(sales_config, fact_store, resolvers, dates, strict_resolution=True)

        with pytest.raises(ResolutionError) as exc_info:
            loader.load([self._line(100, product_id=42), self._line(101)])

        assert len(exc_info.value.failures) == 1
        assert fact_store.facts() == []

    def test_missing_resolver(self, sales_config, fact_store, resolvers, dates):
        """Test every dimension role needs a resolver."""
        del resolvers["customer_key"]

        with pytest.raises(FactLoadError, match="customer_key"):
            FactLoader(sales_config, fact_store, resolvers, dates)

    def test_store_failure_wrapped(self, sales_config, resolvers, dates):
        """Test unexpected store errors surface as FactLoadError."""
        store = Mock()
        store.existing_natural_keys.return_value = set()
        store.append_facts.side_effect = RuntimeError("disk full")
        loader = FactLoader(sales_config, store, resolvers, dates)

        with pytest.raises(FactLoadError, match="disk full"):
            loader.load([self._line(100)])

    def test_inventory_load(self, product_config, dates):
        """Test inventory movements load as one daily row per product and store."""
        store_config = DimensionConfig(name="store", business_key_column="store_id", tracked_columns=["store_name"])
        inventory_config = FactConfig(
            name="inventory",
            fact_type="inventory",
            dimension_references={"product_key": "product", "store_key": "store"},
            business_key_columns={"product_key": "product_id", "store_key": "store_id"},
            natural_key_columns=["inventory_date", "product_id", "store_id"],
            line_key_columns=["transaction_id"]
        )
        resolvers = {
            "product_key": DimensionalKeyResolver(product_config, InMemoryDimensionStore(product_config, [
                DimensionVersion(surrogate_key=11, business_key=1,
                                 attributes={"product_name": "Widget", "unit_price": Decimal("5.00")},
                                 version=1, effective_date=date(2024, 1, 1))
            ])),
            "store_key": DimensionalKeyResolver(store_config, InMemoryDimensionStore(store_config, [
                DimensionVersion(surrogate_key=31, business_key=3, attributes={"store_name": "Main"},
                                 version=1, effective_date=date(2024, 1, 1))
            ])),
        }
        fact_store = InMemoryFactStore(inventory_config)
        loader = FactLoader(inventory_config, fact_store, resolvers, dates)
        movements = [
            TransactionLine(1, {"product_key": 1, "store_key": 3}, date(2024, 1, 15),
                            {"transaction_type": "IN", "quantity": 10}),
            TransactionLine(2, {"product_key": 1, "store_key": 3}, date(2024, 1, 15),
                            {"transaction_type": "OUT", "quantity": 3}),
        ]

        result = loader.load(movements)
        rerun = loader.load(movements)

        assert result.metrics.lines_pending == 1
        assert rerun.metrics.facts_inserted == 0
        fact = fact_store.facts()[0]
        assert fact.natural_transaction_key == (date(2024, 1, 15), 1, 3)
        assert fact.dimension_keys == {"product_key": 11, "store_key": 31}
        assert fact.measures["quantity_on_hand"] == 7
        assert fact.measures["stock_value"] == Decimal("35.00")
