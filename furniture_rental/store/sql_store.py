"""
SQLAlchemy-backed reservation store.

Each atomic transaction runs in its own session. Products are read with
row locks on PostgreSQL, and at commit every product in the read set gets a
conditional version bump; a bump that matches no row means another commit
got there first, so the whole attempt is rolled back and re-run.
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, TypeVar

from sqlalchemy import text, update
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..exceptions import StoreUnavailableError
from ..models.client import Client
from ..models.product import Product
from ..models.reservation import Reservation, ReservationItem, ReservationStatus
from ..schemas.client import ClientResponse
from ..schemas.product import ProductResponse
from ..schemas.reservation import ReservationResponse
from ..utils.db_helpers import acquire_row_lock, conditional_version_bump, is_lock_error
from .base import CommitConflict, ReservationStore, StoreTransaction

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MODELS = {
    "products": (Product, ProductResponse),
    "clients": (Client, ClientResponse),
    "reservations": (Reservation, ReservationResponse),
}

_RESERVATION_FIELDS = ("client_id", "start_date", "end_date", "status", "total_amount", "notes")


def _overlapping_confirmed(session: Session, start_date: date, end_date: date) -> List[Reservation]:
    return (
        session.query(Reservation)
        .filter(
            Reservation.status == ReservationStatus.CONFIRMED.value,
            Reservation.start_date <= end_date,
            Reservation.end_date >= start_date,
        )
        .order_by(Reservation.start_date, Reservation.created_at)
        .all()
    )


def _build_reservation(data: Dict[str, Any]) -> Reservation:
    reservation = Reservation(
        id=data.get("id") or str(uuid.uuid4()),
        **{field: data.get(field) for field in _RESERVATION_FIELDS if field in data}
    )
    reservation.items = [
        ReservationItem(position=index, product_id=item["product_id"], quantity=item["quantity"])
        for index, item in enumerate(data.get("items", []))
    ]
    return reservation


class SqlTransaction(StoreTransaction):

    def __init__(self, session: Session):
        self.session = session
        self.read_versions: Dict[str, int] = {}
        self._products: Dict[str, Optional[ProductResponse]] = {}

    def get_product(self, product_id: str) -> Optional[ProductResponse]:
        if product_id in self._products:
            return self._products[product_id]

        product = acquire_row_lock(self.session, Product, Product.id == product_id)
        record = ProductResponse.model_validate(product) if product else None
        if product is not None:
            self.read_versions[product_id] = product.version
        self._products[product_id] = record
        return record

    def get_confirmed_reservations_overlapping(self, start_date: date, end_date: date) -> List[ReservationResponse]:
        return [
            ReservationResponse.model_validate(r)
            for r in _overlapping_confirmed(self.session, start_date, end_date)
        ]

    def add_reservation(self, data: Dict[str, Any]) -> str:
        reservation = _build_reservation(data)
        self.session.add(reservation)
        return reservation.id

    def commit(self) -> None:
        # Sorted so concurrent committers touch rows in the same order
        for product_id in sorted(self.read_versions):
            if not conditional_version_bump(
                self.session, Product, product_id, self.read_versions[product_id]
            ):
                raise CommitConflict(product_id)
        self.session.commit()


class SqlReservationStore(ReservationStore):
    """Store backed by the application database (SQLite or PostgreSQL)."""

    def __init__(
        self,
        session_factory: sessionmaker,
        max_retries: Optional[int] = None,
        retry_backoff_seconds: float = 0.01
    ):
        super().__init__(max_retries=max_retries, retry_backoff_seconds=retry_backoff_seconds)
        self.session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self.session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error: {e}")
            raise StoreUnavailableError("Reservation store is unavailable") from e
        finally:
            session.close()

    # ---------- reads ----------

    def _get(self, collection: str, document_id: str):
        model, schema = _MODELS[collection]
        with self._session() as session:
            row = session.get(model, document_id)
            return schema.model_validate(row) if row else None

    def get_product(self, product_id: str) -> Optional[ProductResponse]:
        return self._get("products", product_id)

    def list_products(self) -> List[ProductResponse]:
        with self._session() as session:
            rows = session.query(Product).order_by(Product.created_at).all()
            return [ProductResponse.model_validate(p) for p in rows]

    def get_client(self, client_id: str) -> Optional[ClientResponse]:
        return self._get("clients", client_id)

    def list_clients(self) -> List[ClientResponse]:
        with self._session() as session:
            rows = session.query(Client).order_by(Client.name).all()
            return [ClientResponse.model_validate(c) for c in rows]

    def get_reservation(self, reservation_id: str) -> Optional[ReservationResponse]:
        return self._get("reservations", reservation_id)

    def list_reservations(
        self,
        status: Optional[str] = None,
        client_id: Optional[str] = None
    ) -> List[ReservationResponse]:
        with self._session() as session:
            query = session.query(Reservation)
            if status:
                query = query.filter(Reservation.status == str(getattr(status, "value", status)))
            if client_id:
                query = query.filter(Reservation.client_id == client_id)
            rows = query.order_by(Reservation.created_at).all()
            return [ReservationResponse.model_validate(r) for r in rows]

    def get_confirmed_reservations_overlapping(self, start_date: date, end_date: date) -> List[ReservationResponse]:
        with self._session() as session:
            return [
                ReservationResponse.model_validate(r)
                for r in _overlapping_confirmed(session, start_date, end_date)
            ]

    # ---------- writes ----------

    def _bump_product_versions(self, session: Session, product_ids) -> None:
        if product_ids:
            session.execute(
                update(Product)
                .where(Product.id.in_(product_ids))
                .values(version=Product.version + 1)
                .execution_options(synchronize_session=False)
            )

    def create_document(self, collection: str, data: Dict[str, Any]) -> str:
        self._check_collection(collection)
        model, _ = _MODELS[collection]
        data = {key: getattr(value, "value", value) for key, value in data.items()}
        with self._session() as session:
            if collection == "reservations":
                row = _build_reservation(data)
                self._bump_product_versions(session, {item.product_id for item in row.items})
            else:
                row = model(**data)
            session.add(row)
            session.commit()
            return row.id

    def update_document(
        self,
        collection: str,
        document_id: str,
        patch: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None
    ):
        self._check_collection(collection)
        model, schema = _MODELS[collection]
        patch = {key: getattr(value, "value", value) for key, value in patch.items()}
        with self._session() as session:
            row = acquire_row_lock(session, model, model.id == document_id)
            if row is None:
                return None

            previous_status = getattr(row, "status", None)
            if expected:
                # Compare-and-set in the WHERE clause; SQLite takes no row locks
                result = session.execute(
                    update(model)
                    .where(
                        model.id == document_id,
                        *[getattr(model, key) == getattr(value, "value", value) for key, value in expected.items()]
                    )
                    .values(**patch, updated_at=datetime.utcnow())
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    session.rollback()
                    raise CommitConflict(document_id)
                session.expire(row)
            else:
                for key, value in patch.items():
                    setattr(row, key, value)
                row.updated_at = datetime.utcnow()

            if collection == "products":
                row.version = row.version + 1
            elif collection == "reservations" and row.status != previous_status:
                self._bump_product_versions(session, {item.product_id for item in row.items})

            session.commit()
            session.refresh(row)
            return schema.model_validate(row)

    def delete_document(self, collection: str, document_id: str) -> bool:
        self._check_collection(collection)
        model, _ = _MODELS[collection]
        with self._session() as session:
            row = session.get(model, document_id)
            if row is None:
                return False
            session.delete(row)
            session.commit()
            return True

    def ping(self) -> bool:
        with self._session() as session:
            session.execute(text("SELECT 1"))
        return True

    # ---------- transactions ----------

    def _attempt(self, work: Callable[[StoreTransaction], T]) -> T:
        session = self.session_factory()
        try:
            tx = SqlTransaction(session)
            result = work(tx)
            tx.commit()
            return result
        except CommitConflict:
            session.rollback()
            raise
        except DBAPIError as e:
            session.rollback()
            if is_lock_error(e):
                raise CommitConflict("products") from e
            logger.error(f"Database error during reservation transaction: {e}")
            raise StoreUnavailableError("Reservation store is unavailable") from e
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database error during reservation transaction: {e}")
            raise StoreUnavailableError("Reservation store is unavailable") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
