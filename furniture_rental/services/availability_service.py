"""
Availability Calculator

Answers "how many units of a product are free over a date range" from the
confirmed reservations the store reports as overlapping the range.

The reservation manager reuses reserved_quantity() inside its atomic
transaction, so the advisory check and the commit-time check count
reservations identically.
"""

import logging
from datetime import date, timedelta
from typing import Dict, Iterable, Iterator, List, Optional

from ..config import settings
from ..exceptions import InvalidRangeError, ProductNotFoundError
from ..schemas.availability import (
    AvailabilityResult, AvailablePeriod, DayAvailability,
    MultiAvailabilityResult, ProductOccupancy
)
from ..schemas.product import ProductResponse
from ..schemas.reservation import ReservationResponse
from ..utils.metrics import availability_checks_total
from .calendar import DateLike, day_in_range, iter_days, ordered_range, to_date

logger = logging.getLogger(__name__)


def reserved_quantity(
    reservations: Iterable[ReservationResponse],
    product_id: str,
    day: Optional[date] = None
) -> int:
    """
    Units of ``product_id`` held by the given reservations.

    With ``day`` set, only reservations whose range contains that day count.
    """
    total = 0
    for reservation in reservations:
        if day is not None and not day_in_range(day, reservation.start_date, reservation.end_date):
            continue
        total += reservation.quantity_for(product_id)
    return total


def build_result(product: ProductResponse, reserved: int, requested: int) -> AvailabilityResult:
    max_available = product.total_quantity - reserved
    available = requested <= max_available

    if available:
        message = f"{requested} units of {product.name} available"
    else:
        message = f"Only {max_available} units of {product.name} available, {requested} requested"

    return AvailabilityResult(
        product_id=product.id,
        product_name=product.name,
        available=available,
        max_available=max_available,
        total_quantity=product.total_quantity,
        reserved=reserved,
        requested=requested,
        message=message,
    )


class DailyAvailability:
    """
    Day-by-day availability of one product over a closed range.

    Iterating yields one DayAvailability per calendar day; each new
    iteration re-reads the overlapping reservations from the store.
    """

    def __init__(self, store, product: ProductResponse, start_date: date, end_date: date):
        self.store = store
        self.product = product
        self.start_date = start_date
        self.end_date = end_date

    def __iter__(self) -> Iterator[DayAvailability]:
        reservations = self.store.get_confirmed_reservations_overlapping(self.start_date, self.end_date)
        total = self.product.total_quantity
        for day in iter_days(self.start_date, self.end_date):
            reserved = reserved_quantity(reservations, self.product.id, day)
            yield DayAvailability(date=day, total=total, reserved=reserved, available=total - reserved)

    def __len__(self) -> int:
        if self.start_date > self.end_date:
            return 0
        return (self.end_date - self.start_date).days + 1


class AvailabilityCalculator:
    """Read-only availability queries. Results are advisory."""

    def __init__(self, store):
        self.store = store

    def _get_product(self, product_id: str) -> ProductResponse:
        product = self.store.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    def check_availability(
        self,
        product_id: str,
        start_date: DateLike,
        end_date: DateLike,
        requested_quantity: int
    ) -> AvailabilityResult:
        """
        Compare the requested quantity with the units not held by confirmed
        reservations overlapping [start_date, end_date].

        Raises:
            ProductNotFoundError: product_id does not resolve
            InvalidRangeError: the range ends before it starts
        """
        start, end = ordered_range(start_date, end_date)
        product = self._get_product(product_id)
        reservations = self.store.get_confirmed_reservations_overlapping(start, end)

        availability_checks_total.inc(kind="single")
        return build_result(product, reserved_quantity(reservations, product_id), requested_quantity)

    def check_multiple_availability(
        self,
        items: Iterable,
        start_date: DateLike,
        end_date: DateLike
    ) -> MultiAvailabilityResult:
        """Check each line on its own; repeated product ids are not merged."""
        start_date, end_date = ordered_range(start_date, end_date)
        results = [
            self.check_availability(item.product_id, start_date, end_date, item.quantity)
            for item in items
        ]
        return MultiAvailabilityResult(
            all_available=all(r.available for r in results),
            results=results,
            messages=[r.message for r in results],
        )

    def availability_by_day(self, product_id: str, start_date: DateLike, end_date: DateLike) -> DailyAvailability:
        start, end = ordered_range(start_date, end_date)
        product = self._get_product(product_id)
        availability_checks_total.inc(kind="by_day")
        return DailyAvailability(self.store, product, start, end)

    def find_next_available_period(
        self,
        product_id: str,
        quantity: int,
        search_start: DateLike,
        days_needed: int
    ) -> AvailablePeriod:
        """
        Earliest run of ``days_needed`` consecutive days with at least
        ``quantity`` free units, searching search_start .. search_start + horizon.
        """
        if days_needed < 1:
            raise InvalidRangeError("days_needed must be at least 1")

        horizon = settings.availability_search_horizon_days
        start = to_date(search_start)
        days = list(self.availability_by_day(product_id, start, start + timedelta(days=horizon)))

        run_length = 0
        for index, day in enumerate(days):
            run_length = run_length + 1 if day.available >= quantity else 0
            if run_length == days_needed:
                first = days[index - days_needed + 1]
                return AvailablePeriod(
                    found=True,
                    start_date=first.date,
                    end_date=day.date,
                    message=f"Available from {first.date.isoformat()} to {day.date.isoformat()}",
                )

        return AvailablePeriod(
            found=False,
            message=(
                f"No {days_needed} consecutive days with {quantity} units available "
                f"in the next {horizon} days"
            ),
        )

    def occupancy_summary(self, start_date: DateLike, end_date: DateLike) -> List[ProductOccupancy]:
        """Units held and reservation count per product across the range"""
        start, end = ordered_range(start_date, end_date)
        summary: Dict[str, ProductOccupancy] = {}

        for reservation in self.store.get_confirmed_reservations_overlapping(start, end):
            for product_id in dict.fromkeys(item.product_id for item in reservation.items):
                entry = summary.setdefault(
                    product_id,
                    ProductOccupancy(product_id=product_id, total_reserved=0, reservations_count=0),
                )
                entry.total_reserved += reservation.quantity_for(product_id)
                entry.reservations_count += 1

        availability_checks_total.inc(kind="occupancy")
        return list(summary.values())
