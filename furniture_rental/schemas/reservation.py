from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import date, datetime

from ..models.reservation import ReservationStatus
from ..utils.sanitization import clean_text


class ReservationItemIn(BaseModel):
    product_id: str = Field(..., min_length=1, max_length=36)
    quantity: int = Field(..., ge=1)


class ReservationItemResponse(BaseModel):
    product_id: str
    quantity: int

    class Config:
        from_attributes = True


class ReservationCreate(BaseModel):
    """
    Payload for a new reservation.

    Date order and past dates are checked by the reservation service, which
    answers with InvalidRangeError rather than a schema error.
    """
    client_id: str = Field(..., min_length=1, max_length=36)
    items: List[ReservationItemIn] = Field(..., min_length=1)
    start_date: date
    end_date: date
    status: ReservationStatus = ReservationStatus.CONFIRMED
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator('notes', mode='before')
    @classmethod
    def sanitize_notes(cls, v):
        return clean_text(v)


class ReservationStatusUpdate(BaseModel):
    status: ReservationStatus


class ReservationResponse(BaseModel):
    id: str
    client_id: str
    items: List[ReservationItemResponse]
    start_date: date
    end_date: date
    status: ReservationStatus
    total_amount: int
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    def quantity_for(self, product_id: str) -> int:
        """Units of a product held by this reservation (all matching lines)."""
        return sum(item.quantity for item in self.items if item.product_id == product_id)
