"""
Unit tests for DateDimensionGenerator.
"""

import pytest
from datetime import date
from types import GeneratorType

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from libraries.star_schema_etl.date_dimension.generator import DateDimensionGenerator
from libraries.star_schema_etl.storage.memory import InMemoryDateDimensionStore
from libraries.star_schema_etl.common.exceptions import ConfigurationError


class TestDateDimensionGenerator:
    """Test cases for DateDimensionGenerator."""

    @pytest.fixture
    def generator(self):
        """Create DateDimensionGenerator instance."""
        return DateDimensionGenerator(holidays=[date(2024, 12, 25)])

    def test_build_row(self, generator):
        """Test calendar attributes of a Sunday."""
        row = generator.build_row(date(2024, 3, 31))

        assert row.date_key == 20240331
        assert row.year == 2024
        assert row.quarter == 1
        assert row.month == 3
        assert row.month_name == "March"
        assert row.week == 13
        assert row.day_of_week == 0
        assert row.day_name == "Sunday"
        assert row.is_weekend is True
        assert row.is_holiday is False

    def test_weekday_and_holiday(self, generator):
        """Test a Wednesday holiday."""
        row = generator.build_row(date(2024, 12, 25))

        assert row.day_of_week == 3
        assert row.day_name == "Wednesday"
        assert row.quarter == 4
        assert row.is_weekend is False
        assert row.is_holiday is True

    def test_saturday_is_weekend(self, generator):
        """Test Saturday numbering."""
        row = generator.build_row(date(2024, 1, 6))

        assert row.day_of_week == 6
        assert row.is_weekend is True

    def test_generate_is_lazy(self, generator):
        """Test generation yields rows on demand."""
        rows = generator.generate(date(2024, 1, 1), date(9999, 12, 30))

        assert isinstance(rows, GeneratorType)
        assert next(rows).full_date == date(2024, 1, 1)

    def test_generate_inclusive_range(self, generator):
        """Test both ends of the range are generated."""
        rows = list(generator.generate(date(2024, 2, 27), date(2024, 3, 1)))

        assert [row.date_key for row in rows] == [20240227, 20240228, 20240229, 20240301]

    def test_generate_skips_existing(self, generator):
        """Test existing dates are filtered out."""
        rows = list(generator.generate(date(2024, 1, 1), date(2024, 1, 3), {date(2024, 1, 2)}))

        assert [row.full_date for row in rows] == [date(2024, 1, 1), date(2024, 1, 3)]

    def test_start_after_end(self, generator):
        """Test an inverted range is a configuration error."""
        with pytest.raises(ConfigurationError):
            list(generator.generate(date(2024, 2, 1), date(2024, 1, 1)))

    def test_populate_is_idempotent(self):
        """Test populating the same range twice adds nothing the second time."""
        store = InMemoryDateDimensionStore()
        generator = DateDimensionGenerator(batch_size=10)

        first = generator.populate(store, date(2024, 1, 1), date(2024, 1, 31))
        second = generator.populate(store, date(2024, 1, 1), date(2024, 1, 31))
        extended = generator.populate(store, date(2024, 1, 15), date(2024, 2, 5))

        assert first == 31
        assert second == 0
        assert extended == 5
        assert len(store.rows()) == 36
        assert store.date_key(date(2024, 2, 5)) == 20240205
        assert store.date_key(date(2024, 2, 6)) is None
