"""
Pricing Schemas

Pydantic models for quotes, price breakdowns, discounts and deposits.
All amounts are whole CLP.
"""

from datetime import date
from typing import List
from pydantic import BaseModel, Field

from .reservation import ReservationItemIn


class PricedItem(BaseModel):
    """A line item with its resolved daily price"""
    product_id: str
    product_name: str = "Product"
    quantity: int = Field(..., ge=1)
    price_per_day: int = Field(..., ge=0)


class ItemPrice(BaseModel):
    days: int
    price_per_day: int
    quantity: int
    subtotal: int  # one day, all units
    total: int  # all days, all units


class ItemPriceBreakdown(ItemPrice):
    product_id: str
    product_name: str


class ReservationPrice(BaseModel):
    days: int
    start_date: date
    end_date: date
    items: List[ItemPriceBreakdown]
    subtotal: int
    total: int


class DiscountResult(BaseModel):
    original: int
    discount_percent: int
    discount: int
    final: int


class Quote(ReservationPrice):
    volume_discount: DiscountResult
    final_total: int
    formatted_total: str


class QuoteRequest(BaseModel):
    items: List[ReservationItemIn] = Field(..., min_length=1)
    start_date: date
    end_date: date


class Deposit(BaseModel):
    total: int
    deposit_percent: int
    deposit: int
    remaining: int
