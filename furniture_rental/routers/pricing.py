from fastapi import APIRouter, Depends, Query
from typing import Optional

from ..schemas.pricing import Quote, QuoteRequest, Deposit, DiscountResult
from ..services.pricing_engine import PricingEngine
from ..utils.dependencies import get_pricing_engine

router = APIRouter(prefix="/api/pricing", tags=["Pricing"])


@router.post("/quote", response_model=Quote)
async def generate_quote(
    payload: QuoteRequest,
    engine: PricingEngine = Depends(get_pricing_engine)
):
    """Price a prospective reservation, volume discount included"""
    return engine.generate_quote(payload.items, payload.start_date, payload.end_date)


@router.get("/deposit", response_model=Deposit)
async def calculate_deposit(
    total: int = Query(..., ge=0),
    percent: Optional[int] = Query(None, ge=0, le=100),
    engine: PricingEngine = Depends(get_pricing_engine)
):
    return engine.deposit(total, percent)


@router.get("/volume-discount", response_model=DiscountResult)
async def volume_discount(
    days: int = Query(..., ge=1),
    amount: int = Query(..., ge=0),
    engine: PricingEngine = Depends(get_pricing_engine)
):
    return engine.volume_discount(days, amount)
