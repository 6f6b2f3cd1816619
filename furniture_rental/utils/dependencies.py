"""
FastAPI dependencies wiring the store, caller identity and core services
into request handlers.
"""

from typing import Optional

from fastapi import Depends, Header

from ..services.availability_service import AvailabilityCalculator
from ..services.pricing_engine import PricingEngine
from ..services.reservation_service import ReservationTransactionManager
from ..store import ReservationStore, get_store
from .logging_config import caller_id_var
from .security import CallerContext


def get_reservation_store() -> ReservationStore:
    """Overridden in tests to inject an isolated store"""
    return get_store()


def get_caller_context(
    x_caller_id: Optional[str] = Header(None, alias="X-Caller-Id")
) -> CallerContext:
    caller = CallerContext.for_caller(x_caller_id)
    if caller.caller_id:
        caller_id_var.set(caller.caller_id)
    return caller


def get_availability_calculator(
    store: ReservationStore = Depends(get_reservation_store)
) -> AvailabilityCalculator:
    return AvailabilityCalculator(store)


def get_pricing_engine(
    store: ReservationStore = Depends(get_reservation_store)
) -> PricingEngine:
    return PricingEngine(store)


def get_reservation_manager(
    store: ReservationStore = Depends(get_reservation_store)
) -> ReservationTransactionManager:
    return ReservationTransactionManager(store)
