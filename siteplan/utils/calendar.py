"""
Whole-day calendar arithmetic.

Schedules are planned in whole days. All date math goes through these helpers
on ``datetime.date`` values, which carry no time-of-day or timezone, so adding
N days is always exactly N calendar days.
"""

from datetime import date, timedelta
from typing import Iterator


def add_days(day: date, days: int) -> date:
    return day + timedelta(days=int(days))


def days_between(start: date, end: date) -> int:
    """Signed number of whole days from ``start`` to ``end``."""
    return (end - start).days


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every day in the half-open range ``[start, end)``."""
    current = start
    while current < end:
        yield current
        current = current + timedelta(days=1)
