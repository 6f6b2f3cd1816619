"""
Reservation Transaction Manager

Creates reservations without overbooking and moves them through the
pending -> confirmed -> cancelled lifecycle.

Creation re-checks availability inside the store's atomic transaction
using the same counting rules as AvailabilityCalculator, so a reservation
is committed only if every product still has enough free units at commit
time.
"""

import time
from collections import OrderedDict
from datetime import date
from typing import Callable, Dict, List, Optional, Union

from ..exceptions import (
    ClientNotFoundError, CommitConflict, InsufficientAvailabilityError, InvalidStatusTransitionError,
    ProductNotFoundError, RentalError, ReservationNotFoundError, TransactionConflictError
)
from ..models.reservation import ReservationStatus, STATUS_TRANSITIONS
from ..schemas.pricing import PricedItem
from ..schemas.product import ProductResponse
from ..schemas.reservation import ReservationCreate, ReservationResponse
from ..utils.logging_config import get_logger
from ..utils.metrics import (
    record_reservation_created, record_reservation_rejected, transaction_conflicts_total
)
from ..utils.security import CallerContext
from .availability_service import reserved_quantity
from .calendar import validate_date_range
from .pricing_engine import PricingEngine

logger = get_logger(__name__)


def merge_quantities(items) -> "OrderedDict[str, int]":
    """Total requested units per product, in first-seen order"""
    merged: "OrderedDict[str, int]" = OrderedDict()
    for item in items:
        merged[item.product_id] = merged.get(item.product_id, 0) + item.quantity
    return merged


class ReservationTransactionManager:

    def __init__(
        self,
        store,
        pricing: Optional[PricingEngine] = None,
        clock: Callable[[], date] = date.today
    ):
        self.store = store
        self.pricing = pricing or PricingEngine(store)
        self.clock = clock

    # ---------- creation ----------

    def create_reservation(
        self,
        data: Union[ReservationCreate, dict],
        caller: CallerContext
    ) -> str:
        """
        Validate, re-check availability atomically and commit a reservation.

        Returns:
            The new reservation id

        Raises:
            UnauthorizedError, InvalidRangeError, InvalidStatusTransitionError,
            ClientNotFoundError, ProductNotFoundError,
            InsufficientAvailabilityError, TransactionConflictError
        """
        caller.ensure_authorized()
        started = time.perf_counter()

        if isinstance(data, dict):
            data = ReservationCreate(**data)

        try:
            if data.status == ReservationStatus.CANCELLED:
                raise InvalidStatusTransitionError(None, data.status.value)
            validate_date_range(data.start_date, data.end_date, today=self.clock())

            if self.store.get_client(data.client_id) is None:
                raise ClientNotFoundError(data.client_id)

            requested = merge_quantities(data.items)

            def work(tx):
                # Sorted reads keep row-lock order stable across transactions
                products: Dict[str, ProductResponse] = {}
                for product_id in sorted(requested):
                    product = tx.get_product(product_id)
                    if product is None:
                        raise ProductNotFoundError(product_id)
                    products[product_id] = product

                reservations = tx.get_confirmed_reservations_overlapping(data.start_date, data.end_date)

                for product_id, quantity in requested.items():
                    product = products[product_id]
                    available = product.total_quantity - reserved_quantity(reservations, product_id)
                    if quantity > available:
                        raise InsufficientAvailabilityError(product_id, product.name, quantity, available)

                price = self.pricing.reservation_price(
                    [
                        PricedItem(
                            product_id=item.product_id,
                            product_name=products[item.product_id].name,
                            quantity=item.quantity,
                            price_per_day=products[item.product_id].price_per_day,
                        )
                        for item in data.items
                    ],
                    data.start_date,
                    data.end_date,
                )
                total_amount = self.pricing.volume_discount(price.days, price.subtotal).final

                reservation_id = tx.add_reservation({
                    "client_id": data.client_id,
                    "items": [item.model_dump() for item in data.items],
                    "start_date": data.start_date,
                    "end_date": data.end_date,
                    "status": data.status.value,
                    "total_amount": total_amount,
                    "notes": data.notes,
                })
                return reservation_id, total_amount

            reservation_id, total_amount = self.store.run_atomic_transaction(work)

        except InsufficientAvailabilityError as e:
            self._rejected("insufficient_availability", e, product_id=e.product_id)
            raise
        except TransactionConflictError as e:
            record_reservation_rejected("transaction_conflict")
            logger.transaction_conflict(e.attempts)
            raise
        except RentalError as e:
            self._rejected(type(e).__name__, e, client_id=data.client_id)
            raise

        record_reservation_created(data.status.value)
        logger.reservation_created(
            reservation_id,
            client_id=data.client_id,
            total_amount=total_amount,
            status=data.status.value,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return reservation_id

    def _rejected(self, reason: str, error: RentalError, **context) -> None:
        record_reservation_rejected(reason)
        logger.reservation_rejected(reason, error.detail, **context)

    # ---------- lifecycle ----------

    def update_reservation_status(
        self,
        reservation_id: str,
        new_status: Union[ReservationStatus, str],
        caller: CallerContext
    ) -> ReservationResponse:
        """
        Move a reservation along the state machine. Availability is not
        re-checked when a pending reservation is confirmed.

        The write is conditional on the status the transition was checked
        against; if another change lands first, the reservation is re-read
        and the transition checked again.

        Raises:
            UnauthorizedError, ReservationNotFoundError,
            InvalidStatusTransitionError, TransactionConflictError
        """
        caller.ensure_authorized()
        new_status = ReservationStatus(new_status)

        for _ in range(self.store.max_retries):
            reservation = self.get_reservation(reservation_id)
            current = reservation.status
            if current == new_status:
                return reservation

            if new_status not in STATUS_TRANSITIONS[current]:
                raise InvalidStatusTransitionError(current.value, new_status.value)

            try:
                updated = self.store.update_document(
                    "reservations", reservation_id,
                    {"status": new_status.value},
                    expected={"status": current.value},
                )
            except CommitConflict:
                transaction_conflicts_total.inc()
                continue

            if updated is None:
                raise ReservationNotFoundError(reservation_id)

            logger.reservation_status_changed(reservation_id, current.value, new_status.value)
            return updated

        logger.transaction_conflict(self.store.max_retries)
        raise TransactionConflictError(self.store.max_retries)

    def cancel_reservation(self, reservation_id: str, caller: CallerContext) -> ReservationResponse:
        return self.update_reservation_status(reservation_id, ReservationStatus.CANCELLED, caller)

    # ---------- lookups ----------

    def get_reservation(self, reservation_id: str) -> ReservationResponse:
        reservation = self.store.get_reservation(reservation_id)
        if reservation is None:
            raise ReservationNotFoundError(reservation_id)
        return reservation

    def list_reservations(self, status: Optional[Union[ReservationStatus, str]] = None) -> List[ReservationResponse]:
        if status is not None:
            status = ReservationStatus(status).value
        return self.store.list_reservations(status=status)

    def list_client_reservations(self, client_id: str) -> List[ReservationResponse]:
        return self.store.list_reservations(client_id=client_id)

