"""
Calendar Math

Closed date-range helpers shared by availability, pricing and reservations.
Dates arrive either as ISO "YYYY-MM-DD" strings or as datetime.date values;
both order chronologically, so comparisons work on the normalized date.
"""

from datetime import date, datetime, timedelta
from typing import Iterator, Optional, Tuple, Union

from ..exceptions import InvalidRangeError

DateLike = Union[str, date]


def to_date(value: DateLike) -> date:
    """Coerce an ISO calendar-day string (or date/datetime) into a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            raise InvalidRangeError(f"Invalid date '{value}', expected YYYY-MM-DD")
    raise InvalidRangeError(f"Invalid date value: {value!r}")


def ranges_overlap(start_a: DateLike, end_a: DateLike, start_b: DateLike, end_b: DateLike) -> bool:
    """
    True if the closed ranges [start_a, end_a] and [start_b, end_b] share
    at least one day. Ranges touching on a single day overlap.
    """
    return to_date(start_a) <= to_date(end_b) and to_date(end_a) >= to_date(start_b)


def inclusive_day_count(start: DateLike, end: DateLike) -> int:
    """Number of calendar days in the range, counting both ends (same day = 1)."""
    return abs((to_date(end) - to_date(start)).days) + 1


def iter_days(start: DateLike, end: DateLike) -> Iterator[date]:
    """Yield every day of the closed range [start, end]."""
    current = to_date(start)
    last = to_date(end)
    while current <= last:
        yield current
        current += timedelta(days=1)


def day_in_range(day: DateLike, start: DateLike, end: DateLike) -> bool:
    return to_date(start) <= to_date(day) <= to_date(end)


def ordered_range(start: DateLike, end: DateLike) -> Tuple[date, date]:
    """
    Normalize both ends, rejecting a range that ends before it starts.

    Raises:
        InvalidRangeError
    """
    start_d = to_date(start)
    end_d = to_date(end)
    if start_d > end_d:
        raise InvalidRangeError(
            f"Start date {start_d.isoformat()} must not be after end date {end_d.isoformat()}"
        )
    return start_d, end_d


def validate_date_range(start: DateLike, end: DateLike, today: Optional[date] = None) -> None:
    """
    Reject ranges that end before they start or start in the past.

    Raises:
        InvalidRangeError
    """
    start_d, _ = ordered_range(start, end)
    today = today or date.today()

    if start_d < today:
        raise InvalidRangeError(
            f"Start date {start_d.isoformat()} is in the past (today is {today.isoformat()})"
        )
