"""
In-process reservation store.

Documents live in dictionaries guarded by a single lock. Transactions run
their work function without the lock, then validate their read set and
apply staged writes under it, so interleaved transactions behave exactly
like the SQL store's optimistic commits.
"""

import copy
import logging
import threading
import uuid
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, TypeVar

from ..models.reservation import ReservationStatus
from ..schemas.client import ClientResponse
from ..schemas.product import ProductResponse
from ..schemas.reservation import ReservationResponse
from ..services.calendar import ranges_overlap
from .base import CommitConflict, ReservationStore, StoreTransaction

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RECORD_TYPES = {
    "products": ProductResponse,
    "clients": ClientResponse,
    "reservations": ReservationResponse,
}


def _plain(value):
    return getattr(value, "value", value)


class MemoryTransaction(StoreTransaction):

    def __init__(self, store: "InMemoryReservationStore"):
        self._store = store
        self.read_versions: Dict[str, Optional[int]] = {}
        self.staged: List[Dict[str, Any]] = []

    def get_product(self, product_id: str) -> Optional[ProductResponse]:
        with self._store._lock:
            doc = self._store._collections["products"].get(product_id)
            self.read_versions[product_id] = doc["version"] if doc else None
            return ProductResponse(**doc) if doc else None

    def get_confirmed_reservations_overlapping(self, start_date: date, end_date: date) -> List[ReservationResponse]:
        return self._store.get_confirmed_reservations_overlapping(start_date, end_date)

    def add_reservation(self, data: Dict[str, Any]) -> str:
        doc = self._store._new_document(data)
        doc["items"] = [dict(item) for item in doc.get("items", [])]
        self.staged.append(doc)
        return doc["id"]


class InMemoryReservationStore(ReservationStore):
    """Thread-safe, process-local store used by tests and single-node setups."""

    def __init__(self, max_retries: Optional[int] = None, retry_backoff_seconds: float = 0.0):
        super().__init__(max_retries=max_retries, retry_backoff_seconds=retry_backoff_seconds)
        self._lock = threading.RLock()
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {
            name: {} for name in _RECORD_TYPES
        }

    # ---------- helpers ----------

    @staticmethod
    def _new_document(data: Dict[str, Any]) -> Dict[str, Any]:
        doc = copy.deepcopy(data)
        now = datetime.utcnow()
        doc.setdefault("id", str(uuid.uuid4()))
        doc.setdefault("created_at", now)
        doc["updated_at"] = now
        return doc

    def _get(self, collection: str, document_id: str):
        with self._lock:
            doc = self._collections[collection].get(document_id)
            return _RECORD_TYPES[collection](**doc) if doc else None

    def _all(self, collection: str) -> list:
        with self._lock:
            docs = sorted(
                self._collections[collection].values(),
                key=lambda d: d.get("created_at") or datetime.min,
            )
            return [_RECORD_TYPES[collection](**doc) for doc in docs]

    def _bump_versions(self, product_ids) -> None:
        products = self._collections["products"]
        for product_id in product_ids:
            if product_id in products:
                products[product_id]["version"] += 1

    # ---------- reads ----------

    def get_product(self, product_id: str) -> Optional[ProductResponse]:
        return self._get("products", product_id)

    def list_products(self) -> List[ProductResponse]:
        return self._all("products")

    def get_client(self, client_id: str) -> Optional[ClientResponse]:
        return self._get("clients", client_id)

    def list_clients(self) -> List[ClientResponse]:
        return self._all("clients")

    def get_reservation(self, reservation_id: str) -> Optional[ReservationResponse]:
        return self._get("reservations", reservation_id)

    def list_reservations(
        self,
        status: Optional[str] = None,
        client_id: Optional[str] = None
    ) -> List[ReservationResponse]:
        reservations = self._all("reservations")
        if status:
            status = getattr(status, "value", status)
            reservations = [r for r in reservations if r.status.value == status]
        if client_id:
            reservations = [r for r in reservations if r.client_id == client_id]
        return reservations

    def get_confirmed_reservations_overlapping(self, start_date: date, end_date: date) -> List[ReservationResponse]:
        return [
            r for r in self._all("reservations")
            if r.status == ReservationStatus.CONFIRMED
            and ranges_overlap(r.start_date, r.end_date, start_date, end_date)
        ]

    # ---------- writes ----------

    def create_document(self, collection: str, data: Dict[str, Any]) -> str:
        self._check_collection(collection)
        doc = self._new_document(data)
        if collection == "products":
            doc.setdefault("version", 0)
        # Validate before storing
        _RECORD_TYPES[collection](**doc)
        with self._lock:
            self._collections[collection][doc["id"]] = doc
            if collection == "reservations":
                self._bump_versions({item["product_id"] for item in doc.get("items", [])})
        return doc["id"]

    def update_document(
        self,
        collection: str,
        document_id: str,
        patch: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None
    ):
        self._check_collection(collection)
        with self._lock:
            doc = self._collections[collection].get(document_id)
            if doc is None:
                return None

            for key, value in (expected or {}).items():
                if _plain(doc.get(key)) != _plain(value):
                    raise CommitConflict(document_id)

            updated = copy.deepcopy(doc)
            updated.update(copy.deepcopy(patch))
            updated["updated_at"] = datetime.utcnow()
            record = _RECORD_TYPES[collection](**updated)

            if collection == "products":
                updated["version"] = doc["version"] + 1
                record = ProductResponse(**updated)
            self._collections[collection][document_id] = updated

            if collection == "reservations" and updated.get("status") != doc.get("status"):
                self._bump_versions({item["product_id"] for item in updated.get("items", [])})

            return record

    def delete_document(self, collection: str, document_id: str) -> bool:
        self._check_collection(collection)
        with self._lock:
            return self._collections[collection].pop(document_id, None) is not None

    def ping(self) -> bool:
        return True

    # ---------- transactions ----------

    def _attempt(self, work: Callable[[StoreTransaction], T]) -> T:
        tx = MemoryTransaction(self)
        result = work(tx)
        self._commit(tx)
        return result

    def _commit(self, tx: MemoryTransaction) -> None:
        """Validate the read set and apply staged writes as one step."""
        with self._lock:
            products = self._collections["products"]
            for product_id, version in tx.read_versions.items():
                current = products.get(product_id)
                current_version = current["version"] if current else None
                if current_version != version:
                    raise CommitConflict(product_id)

            for doc in tx.staged:
                self._collections["reservations"][doc["id"]] = doc

            self._bump_versions(tx.read_versions.keys())
