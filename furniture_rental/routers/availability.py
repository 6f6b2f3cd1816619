from datetime import date
from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from ..schemas.availability import (
    AvailabilityCheckRequest, AvailabilityResult, MultiAvailabilityRequest,
    MultiAvailabilityResult, DayAvailability, AvailablePeriod, ProductOccupancy
)
from ..services.availability_service import AvailabilityCalculator
from ..utils.dependencies import get_availability_calculator

router = APIRouter(prefix="/api/availability", tags=["Availability"])


@router.post("/check", response_model=AvailabilityResult)
async def check_availability(
    payload: AvailabilityCheckRequest,
    calculator: AvailabilityCalculator = Depends(get_availability_calculator)
):
    """
    Advisory check: how many units of a product are free over a range.
    The booking itself re-checks at commit time.
    """
    return calculator.check_availability(
        payload.product_id, payload.start_date, payload.end_date, payload.quantity
    )


@router.post("/check-multiple", response_model=MultiAvailabilityResult)
async def check_multiple_availability(
    payload: MultiAvailabilityRequest,
    calculator: AvailabilityCalculator = Depends(get_availability_calculator)
):
    return calculator.check_multiple_availability(payload.items, payload.start_date, payload.end_date)


@router.get("/occupancy", response_model=List[ProductOccupancy])
async def occupancy_summary(
    start_date: date = Query(...),
    end_date: date = Query(...),
    calculator: AvailabilityCalculator = Depends(get_availability_calculator)
):
    return calculator.occupancy_summary(start_date, end_date)


@router.get("/{product_id}/by-day", response_model=List[DayAvailability])
async def availability_by_day(
    product_id: str,
    start_date: date = Query(...),
    end_date: date = Query(...),
    calculator: AvailabilityCalculator = Depends(get_availability_calculator)
):
    """Calendar view: one entry per day of the closed range"""
    return list(calculator.availability_by_day(product_id, start_date, end_date))


@router.get("/{product_id}/next-period", response_model=AvailablePeriod)
async def find_next_available_period(
    product_id: str,
    quantity: int = Query(..., ge=1),
    days_needed: int = Query(..., ge=1),
    search_start: Optional[date] = Query(None),
    calculator: AvailabilityCalculator = Depends(get_availability_calculator)
):
    return calculator.find_next_available_period(
        product_id, quantity, search_start or date.today(), days_needed
    )
