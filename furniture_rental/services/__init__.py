# Services package
from .calendar import ranges_overlap, inclusive_day_count, iter_days, validate_date_range, to_date
from .availability_service import AvailabilityCalculator, DailyAvailability, reserved_quantity
from .pricing_engine import PricingEngine
from .reservation_service import ReservationTransactionManager

__all__ = [
    "ranges_overlap", "inclusive_day_count", "iter_days", "validate_date_range", "to_date",
    "AvailabilityCalculator", "DailyAvailability", "reserved_quantity",
    "PricingEngine",
    "ReservationTransactionManager",
]
