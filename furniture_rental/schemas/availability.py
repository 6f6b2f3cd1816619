"""
Availability Schemas

Requests and results of the availability calculator.
"""

from datetime import date
from typing import List, Optional
from pydantic import BaseModel, Field

from .reservation import ReservationItemIn


class AvailabilityCheckRequest(BaseModel):
    product_id: str = Field(..., min_length=1)
    start_date: date
    end_date: date
    quantity: int = Field(..., ge=1)


class AvailabilityResult(BaseModel):
    product_id: str
    product_name: str
    available: bool
    max_available: int  # not clamped, can go negative on inconsistent data
    total_quantity: int
    reserved: int
    requested: int
    message: str


class MultiAvailabilityRequest(BaseModel):
    items: List[ReservationItemIn] = Field(..., min_length=1)
    start_date: date
    end_date: date


class MultiAvailabilityResult(BaseModel):
    all_available: bool
    results: List[AvailabilityResult]
    messages: List[str]

    @property
    def unavailable(self) -> List[AvailabilityResult]:
        return [r for r in self.results if not r.available]


class DayAvailability(BaseModel):
    date: date
    total: int
    reserved: int
    available: int


class AvailablePeriod(BaseModel):
    found: bool
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    message: Optional[str] = None


class ProductOccupancy(BaseModel):
    product_id: str
    total_reserved: int
    reservations_count: int
