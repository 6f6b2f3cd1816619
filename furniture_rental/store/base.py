"""
Reservation Store Adapter

The contract the availability/booking core needs from persistence:
document reads, a confirmed-reservations range query, generic create/update
writes, and an atomic transaction primitive with optimistic conflict
detection.

Every committed transaction bumps the ``version`` of each product it read.
A transaction whose read products changed before its own commit is rolled
back and re-executed, which serializes concurrent reservations of the same
product.
"""

import logging
import time
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Callable, Dict, List, Optional, TypeVar

from ..config import settings
from ..exceptions import CommitConflict, TransactionConflictError
from ..schemas.client import ClientResponse
from ..schemas.product import ProductResponse
from ..schemas.reservation import ReservationResponse
from ..utils.metrics import transaction_conflicts_total

logger = logging.getLogger(__name__)

T = TypeVar("T")

COLLECTIONS = ("products", "clients", "reservations")


class StoreTransaction(ABC):
    """
    Read/write handle passed to the work function of run_atomic_transaction.

    Products read through the handle join the transaction's read set.
    Writes are staged and only become visible when the store commits.
    """

    @abstractmethod
    def get_product(self, product_id: str) -> Optional[ProductResponse]:
        ...

    @abstractmethod
    def get_confirmed_reservations_overlapping(self, start_date: date, end_date: date) -> List[ReservationResponse]:
        ...

    @abstractmethod
    def add_reservation(self, data: Dict[str, Any]) -> str:
        """Stage a new reservation document, returning its id."""
        ...


class ReservationStore(ABC):
    """Persistence boundary of the rental core."""

    def __init__(self, max_retries: Optional[int] = None, retry_backoff_seconds: float = 0.01):
        if max_retries is None:
            max_retries = settings.transaction_max_retries
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.max_retries = max_retries
        self.retry_backoff_seconds = retry_backoff_seconds

    # ---------- reads ----------

    @abstractmethod
    def get_product(self, product_id: str) -> Optional[ProductResponse]:
        ...

    @abstractmethod
    def list_products(self) -> List[ProductResponse]:
        ...

    @abstractmethod
    def get_client(self, client_id: str) -> Optional[ClientResponse]:
        ...

    @abstractmethod
    def list_clients(self) -> List[ClientResponse]:
        ...

    @abstractmethod
    def get_reservation(self, reservation_id: str) -> Optional[ReservationResponse]:
        ...

    @abstractmethod
    def list_reservations(
        self,
        status: Optional[str] = None,
        client_id: Optional[str] = None
    ) -> List[ReservationResponse]:
        ...

    @abstractmethod
    def get_confirmed_reservations_overlapping(self, start_date: date, end_date: date) -> List[ReservationResponse]:
        """Confirmed reservations whose closed [start, end] range overlaps the given one."""
        ...

    # ---------- writes ----------

    @abstractmethod
    def create_document(self, collection: str, data: Dict[str, Any]) -> str:
        """
        Insert a document and return its id. A new reservation bumps the
        version of every product it references, like a committed transaction.
        """
        ...

    @abstractmethod
    def update_document(
        self,
        collection: str,
        document_id: str,
        patch: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None
    ) -> Optional[Any]:
        """
        Apply a partial update. Returns the updated record, or None if it does not exist.

        With ``expected``, the write only happens if every listed field still
        holds the given value; otherwise CommitConflict is raised and nothing
        changes.
        """
        ...

    @abstractmethod
    def delete_document(self, collection: str, document_id: str) -> bool:
        ...

    @abstractmethod
    def ping(self) -> bool:
        ...

    # ---------- transactions ----------

    @abstractmethod
    def _attempt(self, work: Callable[[StoreTransaction], T]) -> T:
        """Run ``work`` once and commit, raising CommitConflict on interference."""
        ...

    def run_atomic_transaction(self, work: Callable[[StoreTransaction], T]) -> T:
        """
        Execute ``work`` atomically, re-running it on conflicting commits.

        Domain errors raised by ``work`` abort the transaction immediately
        with nothing written.

        Raises:
            TransactionConflictError: conflicts persisted for max_retries attempts
        """
        for attempt in range(1, self.max_retries + 1):
            try:
                return self._attempt(work)
            except CommitConflict as e:
                transaction_conflicts_total.inc()
                logger.warning(
                    f"Transaction conflict on {e.document_id} "
                    f"(attempt {attempt}/{self.max_retries})"
                )
                if attempt < self.max_retries and self.retry_backoff_seconds:
                    time.sleep(self.retry_backoff_seconds * attempt)

        logger.error(f"Transaction abandoned after {self.max_retries} conflicting attempts")
        raise TransactionConflictError(self.max_retries)

    @staticmethod
    def _check_collection(collection: str) -> None:
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection '{collection}'")
