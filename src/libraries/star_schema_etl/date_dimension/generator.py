"""
Calendar dimension generation.
"""

from datetime import date, timedelta
from typing import Iterable, Iterator, Optional, Set
import calendar
import logging

from ..common.exceptions import ConfigurationError
from ..common.records import DateRow
from ..common.utils import date_key_for
from ..storage.base import DateDimensionStore

logger = logging.getLogger(__name__)


class DateDimensionGenerator:
    """
    Produces calendar rows for a closed date range.

    Generation is lazy and skips dates already materialized, so populating
    the same range twice appends nothing the second time.
    """

    def __init__(self, holidays: Optional[Iterable[date]] = None, batch_size: int = 1000):
        self.holidays: Set[date] = set(holidays or [])
        self.batch_size = batch_size

    def generate(self, start_date: date, end_date: date,
                 existing_dates: Optional[Set[date]] = None) -> Iterator[DateRow]:
        """
        Yield one row per date in ``[start_date, end_date]`` not yet present.

        Raises:
            ConfigurationError: If ``start_date`` is after ``end_date``
        """
        if start_date > end_date:
            raise ConfigurationError(f"Date range start {start_date} is after end {end_date}",
                                     config_field="date_dimension")

        existing = existing_dates or set()
        current = start_date
        while current <= end_date:
            if current not in existing:
                yield self.build_row(current)
            current += timedelta(days=1)

    def build_row(self, value: date) -> DateRow:
        # isoweekday: Monday=1 .. Sunday=7, stored as Sunday=0 .. Saturday=6
        day_of_week = value.isoweekday() % 7
        return DateRow(
            date_key=date_key_for(value),
            full_date=value,
            year=value.year,
            quarter=(value.month - 1) // 3 + 1,
            month=value.month,
            month_name=calendar.month_name[value.month],
            week=value.isocalendar()[1],
            day_of_week=day_of_week,
            day_name=calendar.day_name[value.weekday()],
            is_weekend=day_of_week in (0, 6),
            is_holiday=value in self.holidays,
        )

    def populate(self, store: DateDimensionStore, start_date: date, end_date: date) -> int:
        """
        Append every missing date of the range to ``store``.

        Args:
            store: Date dimension store
            start_date: First date (inclusive)
            end_date: Last date (inclusive)

        Returns:
            Number of rows appended
        """
        logger.info(f"🚀 ENTER: Populating date dimension from {start_date} to {end_date}")

        appended = 0
        batch = []
        for row in self.generate(start_date, end_date, store.existing_dates()):
            batch.append(row)
            if len(batch) >= self.batch_size:
                store.append_rows(batch)
                appended += len(batch)
                batch = []
        if batch:
            store.append_rows(batch)
            appended += len(batch)

        logger.info(f"🏁 EXIT: Date dimension populated with {appended} new rows")
        return appended
