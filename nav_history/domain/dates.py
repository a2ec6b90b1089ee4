"""Calendar helpers shared by synthesis and reconciliation."""
from __future__ import annotations

import calendar
from datetime import date
from typing import Iterator


def month_end(day: date) -> date:
    return date(day.year, day.month, calendar.monthrange(day.year, day.month)[1])


def year_end(year: int) -> date:
    return date(year, 12, 31)


def iter_month_ends_between(start: date, end: date) -> Iterator[date]:
    """Yield every calendar month-end strictly between ``start`` and ``end``."""
    current = month_end(start)
    while current < end:
        if current > start:
            yield current
        if current.month == 12:
            current = date(current.year + 1, 1, 31)
        else:
            current = month_end(date(current.year, current.month + 1, 1))
