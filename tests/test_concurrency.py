"""
Concurrency Tests for Overbooking Prevention

Tests cover:
- Row lock and conditional version helpers
- Two concurrent requests for the last units of a product
- Many concurrent single-unit requests against a small stock
- Concurrent status changes on one reservation
- Conflict detection and retry in the SQL store

These tests verify that concurrent reservation commits never oversell.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from unittest.mock import MagicMock

import pytest

from furniture_rental.database import create_tables, make_engine, make_session_factory
from furniture_rental.exceptions import (
    InsufficientAvailabilityError, InvalidStatusTransitionError, TransactionConflictError
)
from furniture_rental.models.product import Product
from furniture_rental.models.reservation import ReservationStatus
from furniture_rental.services.availability_service import reserved_quantity
from furniture_rental.services.reservation_service import ReservationTransactionManager
from furniture_rental.store.memory_store import InMemoryReservationStore
from furniture_rental.store.sql_store import SqlReservationStore
from furniture_rental.utils.db_helpers import acquire_row_lock, conditional_version_bump, is_lock_error
from furniture_rental.utils.metrics import transaction_conflicts_total
from furniture_rental.utils.security import CallerContext

FIXED_TODAY = date(2025, 1, 1)
START = date(2025, 3, 1)
END = date(2025, 3, 5)


def payload(client_id, product_id, quantity):
    return {
        "client_id": client_id,
        "items": [{"product_id": product_id, "quantity": quantity}],
        "start_date": START,
        "end_date": END,
    }


def run_concurrently(func, args_list, workers):
    """Run func for each args tuple in parallel, returning (results, errors)"""
    results, errors = [], []
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(func, *args) for args in args_list]
        for future in futures:
            try:
                results.append(future.result(timeout=30))
            except Exception as e:
                errors.append(e)
    return results, errors


class BarrierStore(InMemoryReservationStore):
    """Holds each thread's first commit until every thread has finished its reads"""

    def __init__(self, parties: int, **kwargs):
        super().__init__(**kwargs)
        self.barrier = threading.Barrier(parties, timeout=10)
        self._arrived = set()
        self._arrived_lock = threading.Lock()

    def _commit(self, tx):
        ident = threading.get_ident()
        with self._arrived_lock:
            first_attempt = ident not in self._arrived
            self._arrived.add(ident)
        if first_attempt:
            self.barrier.wait()
        super()._commit(tx)


class StatusRaceStore(InMemoryReservationStore):
    """
    Both threads read the reservation before either writes; the confirm
    write is held until the cancel write has landed.
    """

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.barrier = threading.Barrier(2, timeout=10)
        self.cancelled = threading.Event()
        self._readers = set()
        self._readers_lock = threading.Lock()

    def get_reservation(self, reservation_id):
        reservation = super().get_reservation(reservation_id)
        ident = threading.get_ident()
        with self._readers_lock:
            first_read = ident not in self._readers and len(self._readers) < self.barrier.parties
            self._readers.add(ident)
        if first_read:
            self.barrier.wait()
        return reservation

    def update_document(self, collection, document_id, patch, expected=None):
        if patch.get("status") == "confirmed":
            assert self.cancelled.wait(timeout=10)
        try:
            return super().update_document(collection, document_id, patch, expected)
        finally:
            if patch.get("status") == "cancelled":
                self.cancelled.set()


class TestDbHelpers:
    """Dialect-dependent locking helpers"""

    def test_acquire_row_lock_uses_for_update_on_postgres(self):
        """Verify acquire_row_lock applies with_for_update on PostgreSQL"""
        db = MagicMock()
        db.bind.dialect.name = 'postgresql'

        query_mock = MagicMock()
        filter_mock = MagicMock()
        for_update_mock = MagicMock()
        query_mock.filter.return_value = filter_mock
        filter_mock.with_for_update.return_value = for_update_mock
        for_update_mock.first.return_value = MagicMock()
        db.query.return_value = query_mock

        acquire_row_lock(db, Product, Product.id == 'p1', nowait=True)

        filter_mock.with_for_update.assert_called_once_with(nowait=True)

    def test_acquire_row_lock_skips_locking_on_sqlite(self):
        """Verify acquire_row_lock skips locking on SQLite"""
        db = MagicMock()
        db.bind.dialect.name = 'sqlite'

        query_mock = MagicMock()
        filter_mock = MagicMock()
        filter_mock.first.return_value = MagicMock()
        query_mock.filter.return_value = filter_mock
        db.query.return_value = query_mock

        acquire_row_lock(db, Product, Product.id == 'p1')

        filter_mock.with_for_update.assert_not_called()

    def test_conditional_version_bump_reports_rowcount(self):
        db = MagicMock()
        db.execute.return_value.rowcount = 1
        assert conditional_version_bump(db, Product, 'p1', 3) is True

        db.execute.return_value.rowcount = 0
        assert conditional_version_bump(db, Product, 'p1', 3) is False

    def test_is_lock_error(self):
        locked = MagicMock()
        locked.orig = Exception("database is locked")
        other = MagicMock()
        other.orig = Exception("no such table: products")

        assert is_lock_error(locked) is True
        assert is_lock_error(other) is False


class TestMemoryStoreRace:
    """Interleaved reservations against the in-memory store"""

    def test_two_requests_for_all_units_exactly_one_wins(self, make_product, make_client):
        """
        Both transactions read the product before either commits. The second
        commit sees a changed version, re-runs, and finds nothing left.
        """
        store = BarrierStore(parties=2)
        product_id = make_product(total_quantity=4, target=store)
        client_id = make_client(target=store)
        manager = ReservationTransactionManager(store, clock=lambda: FIXED_TODAY)
        conflicts_before = transaction_conflicts_total.get()

        results, errors = run_concurrently(
            manager.create_reservation,
            [(payload(client_id, product_id, 4), CallerContext.for_caller(f"staff-{i}")) for i in range(2)],
            workers=2
        )

        assert len(results) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], InsufficientAvailabilityError)
        assert errors[0].available == 0
        assert transaction_conflicts_total.get() > conflicts_before
        assert len(store.list_reservations(status="confirmed")) == 1

    def test_many_single_unit_requests_never_oversell(self, make_product, make_client):
        store = InMemoryReservationStore(max_retries=100)
        product_id = make_product(total_quantity=5, target=store)
        client_id = make_client(target=store)
        manager = ReservationTransactionManager(store, clock=lambda: FIXED_TODAY)
        caller = CallerContext.for_caller("staff-1")

        results, errors = run_concurrently(
            manager.create_reservation,
            [(payload(client_id, product_id, 1), caller) for _ in range(12)],
            workers=12
        )

        assert len(results) == 5
        assert len(errors) == 7
        assert all(isinstance(e, InsufficientAvailabilityError) for e in errors)
        confirmed = store.list_reservations(status="confirmed")
        assert reserved_quantity(confirmed, product_id) == 5

    def test_concurrent_cancel_and_confirm_end_cancelled(self, make_product, make_reservation):
        """
        Cancel and confirm both check the pending reservation. The cancel
        lands first, so the confirm must fail instead of overwriting it.
        """
        store = StatusRaceStore()
        product_id = make_product(target=store)
        reservation_id = make_reservation([(product_id, 1)], START, END, status="pending", target=store)
        manager = ReservationTransactionManager(store, clock=lambda: FIXED_TODAY)
        caller = CallerContext.for_caller("staff-1")

        results, errors = run_concurrently(
            manager.update_reservation_status,
            [(reservation_id, "cancelled", caller), (reservation_id, "confirmed", caller)],
            workers=2
        )

        assert [r.status for r in results] == [ReservationStatus.CANCELLED]
        assert len(errors) == 1
        assert isinstance(errors[0], InvalidStatusTransitionError)
        assert store.get_reservation(reservation_id).status == ReservationStatus.CANCELLED


class TestSqlStoreConflicts:
    """Optimistic version checks in the SQL store (SQLite file database)"""

    @pytest.fixture
    def session_factory(self, tmp_path):
        engine = make_engine(f"sqlite:///{tmp_path / 'rental.db'}")
        create_tables(engine)
        yield make_session_factory(engine)
        engine.dispose()

    def test_conflicting_commit_is_retried(self, session_factory, make_product, make_client):
        store = SqlReservationStore(session_factory, retry_backoff_seconds=0)
        competitor = SqlReservationStore(session_factory, retry_backoff_seconds=0)
        product_id = make_product(total_quantity=5, target=store)
        client_id = make_client(target=store)

        def reservation(quantity):
            return {
                "client_id": client_id,
                "items": [{"product_id": product_id, "quantity": quantity}],
                "start_date": START,
                "end_date": END,
                "status": "confirmed",
                "total_amount": 0,
            }

        def competing_work(tx):
            tx.get_product(product_id)
            return tx.add_reservation(reservation(3))

        attempts = []

        def work(tx):
            attempts.append(1)
            product = tx.get_product(product_id)
            reserved = reserved_quantity(tx.get_confirmed_reservations_overlapping(START, END), product_id)
            if len(attempts) == 1:
                # Another writer commits between our reads and our commit
                competitor.run_atomic_transaction(competing_work)
            available = product.total_quantity - reserved
            if available < 3:
                raise InsufficientAvailabilityError(product_id, product.name, 3, available)
            return tx.add_reservation(reservation(3))

        with pytest.raises(InsufficientAvailabilityError) as exc_info:
            store.run_atomic_transaction(work)

        assert len(attempts) == 2
        assert exc_info.value.available == 2
        assert len(store.list_reservations()) == 1
        assert store.get_product(product_id).version == 1

    def test_retry_succeeds_when_stock_remains(self, session_factory, make_product, make_client):
        store = SqlReservationStore(session_factory, retry_backoff_seconds=0)
        competitor = SqlReservationStore(session_factory, retry_backoff_seconds=0)
        product_id = make_product(total_quantity=5, target=store)
        client_id = make_client(target=store)
        manager = ReservationTransactionManager(competitor, clock=lambda: FIXED_TODAY)
        caller = CallerContext.for_caller("staff-2")

        attempts = []

        def work(tx):
            attempts.append(1)
            tx.get_product(product_id)
            if len(attempts) == 1:
                manager.create_reservation(payload(client_id, product_id, 2), caller)
            return tx.add_reservation({
                "client_id": client_id,
                "items": [{"product_id": product_id, "quantity": 1}],
                "start_date": START,
                "end_date": END,
                "status": "confirmed",
                "total_amount": 0,
            })

        reservation_id = store.run_atomic_transaction(work)

        assert len(attempts) == 2
        assert store.get_reservation(reservation_id) is not None
        assert reserved_quantity(store.list_reservations(status="confirmed"), product_id) == 3
        assert store.get_product(product_id).version == 2

    def test_gives_up_after_max_retries(self, session_factory, make_product, make_client):
        store = SqlReservationStore(session_factory, max_retries=2, retry_backoff_seconds=0)
        product_id = make_product(target=store)

        def work(tx):
            tx.get_product(product_id)
            # Bump the version from outside on every attempt
            store.update_document("products", product_id, {"description": "touched"})
            return None

        with pytest.raises(TransactionConflictError) as exc_info:
            store.run_atomic_transaction(work)

        assert exc_info.value.attempts == 2

    def test_direct_reservation_insert_invalidates_open_transaction(self, session_factory, make_product):
        store = SqlReservationStore(session_factory, retry_backoff_seconds=0)
        competitor = SqlReservationStore(session_factory, retry_backoff_seconds=0)
        product_id = make_product(target=store)
        attempts = []

        def work(tx):
            attempts.append(1)
            tx.get_product(product_id)
            if len(attempts) == 1:
                competitor.create_document("reservations", {
                    "client_id": "c1",
                    "items": [{"product_id": product_id, "quantity": 1}],
                    "start_date": START,
                    "end_date": END,
                    "status": "confirmed",
                    "total_amount": 0,
                })
            return len(attempts)

        assert store.run_atomic_transaction(work) == 2
        assert store.get_product(product_id).version == 2

    def test_confirm_loses_to_committed_cancel(self, session_factory, make_product, make_reservation):
        competitor = SqlReservationStore(session_factory, retry_backoff_seconds=0)

        class CancelledFirst(SqlReservationStore):
            def update_document(self, collection, document_id, patch, expected=None):
                if expected and patch.get("status") == "confirmed":
                    competitor.update_document(collection, document_id, {"status": "cancelled"})
                return super().update_document(collection, document_id, patch, expected)

        store = CancelledFirst(session_factory, retry_backoff_seconds=0)
        product_id = make_product(target=store)
        reservation_id = make_reservation([(product_id, 1)], START, END, status="pending", target=store)
        manager = ReservationTransactionManager(store, clock=lambda: FIXED_TODAY)

        with pytest.raises(InvalidStatusTransitionError):
            manager.update_reservation_status(reservation_id, "confirmed", CallerContext.for_caller("staff-1"))

        assert store.get_reservation(reservation_id).status == ReservationStatus.CANCELLED
