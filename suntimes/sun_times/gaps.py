"""
Gap calculation: which calendar dates of a closed range have no stored record yet.
"""
from datetime import date, timedelta
from typing import Iterable, Iterator, List

from suntimes.sun_times.errors import InvalidDateRange


def date_range(start_date: date, end_date: date) -> Iterator[date]:
    """Every date in [start_date, end_date], ascending."""
    current = start_date
    while current <= end_date:
        yield current
        current += timedelta(days=1)


def missing_dates(start_date: date, end_date: date, existing: Iterable[date]) -> List[date]:
    """Dates in [start_date, end_date] not in existing, ascending and duplicate-free."""
    if start_date > end_date:
        raise InvalidDateRange("End date must be after or equal to start date")
    present = set(existing)
    return [d for d in date_range(start_date, end_date) if d not in present]
