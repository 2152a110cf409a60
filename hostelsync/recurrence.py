"""Calendar date generation for recurring menus."""
from __future__ import annotations

from datetime import date, datetime, time
from enum import Enum
from typing import Iterable, List, Optional

from dateutil.rrule import DAILY, FR, MO, SA, SU, TH, TU, WE, WEEKLY, rrule

# Index 0 is Sunday, matching the days_of_week convention of the API.
_SUNDAY_FIRST = (SU, MO, TU, WE, TH, FR, SA)


class Frequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    WEEKDAYS = "WEEKDAYS"
    WEEKENDS = "WEEKENDS"


def _weekdays_for(frequency: Frequency, days_of_week: Optional[Iterable[int]]):
    if frequency is Frequency.WEEKLY:
        days = sorted(set(days_of_week or ()))
        if not days:
            raise ValueError("days_of_week is required for WEEKLY frequency")
        if any(day < 0 or day > 6 for day in days):
            raise ValueError("Day of week must be 0-6 (0=Sunday)")
        return [_SUNDAY_FIRST[day] for day in days]
    if frequency is Frequency.WEEKDAYS:
        return [MO, TU, WE, TH, FR]
    if frequency is Frequency.WEEKENDS:
        return [SA, SU]
    return None


def generate_dates(
    start: date,
    end: date,
    frequency: Frequency | str,
    days_of_week: Optional[Iterable[int]] = None,
) -> List[date]:
    """Return every date in ``[start, end]`` matched by ``frequency``.

    >>> generate_dates(date(2025, 11, 9), date(2025, 11, 22), "WEEKLY", [1, 3])
    [datetime.date(2025, 11, 10), datetime.date(2025, 11, 12), datetime.date(2025, 11, 17), datetime.date(2025, 11, 19)]
    """
    frequency = Frequency(frequency)
    if end < start:
        return []
    byweekday = _weekdays_for(frequency, days_of_week)
    rule = rrule(
        DAILY if byweekday is None else WEEKLY,
        dtstart=datetime.combine(start, time.min),
        until=datetime.combine(end, time.min),
        byweekday=byweekday,
    )
    return [occurrence.date() for occurrence in rule]
