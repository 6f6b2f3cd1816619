"""
Domain errors for the availability and reservation core.

Every error carries the HTTP status the API layer should answer with, so the
advisory availability check and the commit-time check surface failures the
same way.
"""

from typing import Any, Dict, Optional


class RentalError(Exception):
    """Base class for all errors raised by the rental core."""

    status_code: int = 400

    def __init__(self, detail: str, **extra: Any):
        super().__init__(detail)
        self.detail = detail
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> Dict[str, Any]:
        payload = {"detail": self.detail, "error": type(self).__name__}
        payload.update(self.extra)
        return payload


class NotFoundError(RentalError):
    status_code = 404


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id} not found", product_id=product_id)
        self.product_id = product_id


class ClientNotFoundError(NotFoundError):
    def __init__(self, client_id: str):
        super().__init__(f"Client {client_id} not found", client_id=client_id)
        self.client_id = client_id


class ReservationNotFoundError(NotFoundError):
    def __init__(self, reservation_id: str):
        super().__init__(f"Reservation {reservation_id} not found", reservation_id=reservation_id)
        self.reservation_id = reservation_id


class InvalidRangeError(RentalError):
    status_code = 400


class InvalidStatusTransitionError(RentalError):
    status_code = 409

    def __init__(self, current: Optional[str], requested: str):
        if current is None:
            detail = f"A reservation cannot be created with status '{requested}'"
        else:
            detail = f"Cannot change reservation status from '{current}' to '{requested}'"
        super().__init__(detail, current_status=current, requested_status=requested)


class InsufficientAvailabilityError(RentalError):
    status_code = 409

    def __init__(self, product_id: str, product_name: str, requested: int, available: int):
        super().__init__(
            f"Not enough availability for {product_name}. "
            f"Requested: {requested}, available: {available}",
            product_id=product_id,
            product_name=product_name,
            requested=requested,
            available=available,
        )
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available

    @property
    def shortfall(self) -> int:
        return self.requested - self.available


class CommitConflict(Exception):
    """
    A document changed between the read and the write that depended on it.

    Internal to the store layer; callers retry and never see it over HTTP.
    """

    def __init__(self, document_id: str):
        super().__init__(f"Concurrent modification of {document_id}")
        self.document_id = document_id


class TransactionConflictError(RentalError):
    status_code = 409

    def __init__(self, attempts: int):
        super().__init__(
            f"Reservation could not be committed after {attempts} attempts due to concurrent changes",
            attempts=attempts,
        )
        self.attempts = attempts


class StoreUnavailableError(RentalError):
    status_code = 503


class UnauthorizedError(RentalError):
    status_code = 401
