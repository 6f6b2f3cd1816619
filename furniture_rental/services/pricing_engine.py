"""
Pricing Engine Service

Prices rentals in whole CLP:
- Per-item price: price_per_day x quantity x inclusive day count
- Reservation price: sum of item totals
- Volume discount tiers by rental length
- Deposit split

Pricing Formula:
1. item subtotal = price_per_day * quantity  (one day, all units)
2. item total = subtotal * days
3. reservation subtotal = sum(item totals)
4. final = subtotal - round_half_up(subtotal * tier_percent / 100)
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, List, Optional, Tuple

from ..config import settings
from ..exceptions import ProductNotFoundError
from ..schemas.pricing import (
    Deposit, DiscountResult, ItemPrice, ItemPriceBreakdown, PricedItem,
    Quote, ReservationPrice
)
from .calendar import DateLike, inclusive_day_count, ordered_range

# (minimum days, discount percent), highest tier first
VOLUME_DISCOUNT_TIERS: Tuple[Tuple[int, int], ...] = (
    (30, 20),
    (14, 15),
    (7, 10),
)


def round_half_up(value) -> int:
    """Round to the nearest whole peso, halves away from zero"""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_of(amount: int, percent) -> int:
    return round_half_up(Decimal(amount) * Decimal(str(percent)) / Decimal(100))


def _field(item: Any, name: str):
    if isinstance(item, dict):
        return item[name]
    return getattr(item, name)


class PricingEngine:
    """
    Stateless price calculator.

    A store is only needed by generate_quote, which resolves product names
    and daily prices by id.
    """

    def __init__(self, store=None):
        self.store = store

    def item_price(
        self,
        price_per_day: int,
        start_date: DateLike,
        end_date: DateLike,
        quantity: int
    ) -> ItemPrice:
        days = inclusive_day_count(start_date, end_date)
        subtotal = price_per_day * quantity
        return ItemPrice(
            days=days,
            price_per_day=price_per_day,
            quantity=quantity,
            subtotal=subtotal,
            total=subtotal * days,
        )

    def reservation_price(
        self,
        items: Iterable[PricedItem],
        start_date: DateLike,
        end_date: DateLike
    ) -> ReservationPrice:
        """Price every line for the range and add up the totals"""
        start_date, end_date = ordered_range(start_date, end_date)
        breakdown: List[ItemPriceBreakdown] = []
        for item in items:
            if isinstance(item, dict):
                item = PricedItem(**item)
            price = self.item_price(item.price_per_day, start_date, end_date, item.quantity)
            breakdown.append(ItemPriceBreakdown(
                product_id=item.product_id,
                product_name=item.product_name,
                **price.model_dump()
            ))

        subtotal = sum(line.total for line in breakdown)
        return ReservationPrice(
            days=inclusive_day_count(start_date, end_date),
            start_date=start_date,
            end_date=end_date,
            items=breakdown,
            subtotal=subtotal,
            total=subtotal,
        )

    def apply_discount(self, amount: int, discount_percent: int) -> DiscountResult:
        discount = percent_of(amount, discount_percent)
        return DiscountResult(
            original=amount,
            discount_percent=discount_percent,
            discount=discount,
            final=amount - discount,
        )

    def volume_discount_percent(self, days: int) -> int:
        for min_days, percent in VOLUME_DISCOUNT_TIERS:
            if days >= min_days:
                return percent
        return 0

    def volume_discount(self, days: int, base_amount: int) -> DiscountResult:
        """Long-rental discount: 7+ days 10%, 14+ days 15%, 30+ days 20%"""
        return self.apply_discount(base_amount, self.volume_discount_percent(days))

    def priced_items(self, items: Iterable[Any]) -> List[PricedItem]:
        """Resolve name and daily price for ``{product_id, quantity}`` lines"""
        if self.store is None:
            raise RuntimeError("PricingEngine needs a store to resolve products")

        priced = []
        for item in items:
            product_id = _field(item, "product_id")
            product = self.store.get_product(product_id)
            if product is None:
                raise ProductNotFoundError(product_id)
            priced.append(PricedItem(
                product_id=product_id,
                product_name=product.name,
                quantity=_field(item, "quantity"),
                price_per_day=product.price_per_day,
            ))
        return priced

    def generate_quote(self, items: Iterable[Any], start_date: DateLike, end_date: DateLike) -> Quote:
        """
        Full customer-facing quote: per-line breakdown, volume discount and
        the formatted final total.

        Raises:
            ProductNotFoundError: an item references an unknown product
            InvalidRangeError: the range ends before it starts
        """
        start_date, end_date = ordered_range(start_date, end_date)
        pricing = self.reservation_price(self.priced_items(items), start_date, end_date)
        discount = self.volume_discount(pricing.days, pricing.subtotal)
        return Quote(
            **pricing.model_dump(),
            volume_discount=discount,
            final_total=discount.final,
            formatted_total=self.format_price(discount.final),
        )

    def deposit(self, total_amount: int, deposit_percent: Optional[int] = None) -> Deposit:
        if deposit_percent is None:
            deposit_percent = settings.default_deposit_percent
        deposit = percent_of(total_amount, deposit_percent)
        return Deposit(
            total=total_amount,
            deposit_percent=deposit_percent,
            deposit=deposit,
            remaining=total_amount - deposit,
        )

    @staticmethod
    def format_price(amount) -> str:
        """es-CL peso display, e.g. 15000 -> "$15.000", -2500 -> "-$2.500" """
        value = round_half_up(amount)
        sign = "-" if value < 0 else ""
        grouped = f"{abs(value):,}".replace(",", ".")
        return f"{sign}${grouped}"
