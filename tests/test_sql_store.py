"""
Tests for the SQLAlchemy reservation store against a temporary SQLite file
"""

from datetime import date
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from furniture_rental.database import create_tables, make_engine, make_session_factory
from furniture_rental.exceptions import CommitConflict, InsufficientAvailabilityError, StoreUnavailableError
from furniture_rental.models.reservation import ReservationStatus
from furniture_rental.services.availability_service import AvailabilityCalculator
from furniture_rental.services.reservation_service import ReservationTransactionManager
from furniture_rental.store.sql_store import SqlReservationStore
from furniture_rental.utils.security import CallerContext


@pytest.fixture
def sql_store(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'store.db'}")
    create_tables(engine)
    yield SqlReservationStore(make_session_factory(engine), retry_backoff_seconds=0)
    engine.dispose()


@pytest.fixture
def add_reservation(sql_store):
    def _add(product_id, quantity, start, end, status="confirmed", client_id="c1"):
        return sql_store.create_document("reservations", {
            "client_id": client_id,
            "items": [{"product_id": product_id, "quantity": quantity}],
            "start_date": start,
            "end_date": end,
            "status": status,
            "total_amount": 0,
        })
    return _add


class TestDocuments:

    def test_product_roundtrip(self, sql_store, make_product):
        product_id = make_product(name="Round table", total_quantity=3, price_per_day=5000, category="table",
                                  target=sql_store)

        product = sql_store.get_product(product_id)
        assert product.name == "Round table"
        assert product.category.value == "table"
        assert product.total_quantity == 3
        assert product.version == 0
        assert [p.id for p in sql_store.list_products()] == [product_id]

    def test_missing_documents_return_none(self, sql_store):
        assert sql_store.get_product("missing") is None
        assert sql_store.get_client("missing") is None
        assert sql_store.get_reservation("missing") is None
        assert sql_store.update_document("products", "missing", {"name": "x"}) is None
        assert sql_store.delete_document("clients", "missing") is False

    def test_product_update_bumps_version(self, sql_store, make_product):
        product_id = make_product(target=sql_store)

        updated = sql_store.update_document("products", product_id, {"price_per_day": 2500})

        assert updated.price_per_day == 2500
        assert updated.version == 1

    def test_unknown_collection(self, sql_store):
        with pytest.raises(ValueError):
            sql_store.create_document("invoices", {})

    def test_reservation_items_keep_order(self, sql_store):
        reservation_id = sql_store.create_document("reservations", {
            "client_id": "c1",
            "items": [{"product_id": "b", "quantity": 2}, {"product_id": "a", "quantity": 1}],
            "start_date": date(2025, 3, 1),
            "end_date": date(2025, 3, 2),
            "status": "pending",
            "total_amount": 100,
        })

        reservation = sql_store.get_reservation(reservation_id)
        assert [i.product_id for i in reservation.items] == ["b", "a"]
        assert reservation.status == ReservationStatus.PENDING

    def test_deleting_product_keeps_reservations(self, sql_store, make_product, add_reservation):
        product_id = make_product(target=sql_store)
        reservation_id = add_reservation(product_id, 1, date(2025, 3, 1), date(2025, 3, 2))

        assert sql_store.delete_document("products", product_id) is True
        assert sql_store.get_reservation(reservation_id).items[0].product_id == product_id

    def test_reservation_insert_bumps_product_version(self, sql_store, make_product, add_reservation):
        product_id = make_product(target=sql_store)
        add_reservation(product_id, 1, date(2025, 3, 1), date(2025, 3, 2))
        assert sql_store.get_product(product_id).version == 1

    def test_status_change_bumps_product_version(self, sql_store, make_product, add_reservation):
        product_id = make_product(target=sql_store)
        reservation_id = add_reservation(product_id, 1, date(2025, 3, 1), date(2025, 3, 2), status="pending")

        sql_store.update_document("reservations", reservation_id, {"status": "confirmed"})

        # insert plus status change
        assert sql_store.get_product(product_id).version == 2

    def test_stale_expected_status_changes_nothing(self, sql_store, make_product, add_reservation):
        product_id = make_product(target=sql_store)
        reservation_id = add_reservation(product_id, 1, date(2025, 3, 1), date(2025, 3, 2), status="pending")

        with pytest.raises(CommitConflict):
            sql_store.update_document("reservations", reservation_id, {"status": "cancelled"},
                                      expected={"status": "confirmed"})

        assert sql_store.get_reservation(reservation_id).status == ReservationStatus.PENDING
        assert sql_store.get_product(product_id).version == 1

    def test_matching_expected_status_applies(self, sql_store, make_product, add_reservation):
        product_id = make_product(target=sql_store)
        reservation_id = add_reservation(product_id, 1, date(2025, 3, 1), date(2025, 3, 2), status="pending")

        updated = sql_store.update_document("reservations", reservation_id, {"status": "cancelled"},
                                            expected={"status": ReservationStatus.PENDING})

        assert updated.status == ReservationStatus.CANCELLED
        assert sql_store.get_product(product_id).version == 2

    def test_ping(self, sql_store):
        assert sql_store.ping() is True


class TestRangeQuery:

    def test_two_sided_overlap_in_sql(self, sql_store, make_product, add_reservation):
        product_id = make_product(target=sql_store)
        touching_start = add_reservation(product_id, 1, date(2025, 2, 25), date(2025, 3, 1))
        inside = add_reservation(product_id, 1, date(2025, 3, 2), date(2025, 3, 3))
        touching_end = add_reservation(product_id, 1, date(2025, 3, 5), date(2025, 3, 9))
        add_reservation(product_id, 1, date(2025, 2, 1), date(2025, 2, 28))
        add_reservation(product_id, 1, date(2025, 3, 6), date(2025, 3, 9))
        add_reservation(product_id, 1, date(2025, 3, 2), date(2025, 3, 3), status="cancelled")
        add_reservation(product_id, 1, date(2025, 3, 2), date(2025, 3, 3), status="pending")

        found = sql_store.get_confirmed_reservations_overlapping(date(2025, 3, 1), date(2025, 3, 5))

        assert {r.id for r in found} == {touching_start, inside, touching_end}

    def test_list_filters(self, sql_store, make_product, add_reservation):
        product_id = make_product(target=sql_store)
        add_reservation(product_id, 1, date(2025, 3, 1), date(2025, 3, 2), client_id="ana")
        add_reservation(product_id, 1, date(2025, 3, 1), date(2025, 3, 2), status="pending", client_id="ana")
        add_reservation(product_id, 1, date(2025, 3, 1), date(2025, 3, 2), client_id="luis")

        assert len(sql_store.list_reservations()) == 3
        assert len(sql_store.list_reservations(status="confirmed")) == 2
        assert len(sql_store.list_reservations(client_id="ana")) == 2
        assert len(sql_store.list_reservations(status=ReservationStatus.PENDING, client_id="ana")) == 1


class TestBookingFlow:

    def test_end_to_end_on_sql(self, sql_store, make_product, make_client):
        product_id = make_product(name="Folding chair", total_quantity=5, target=sql_store)
        client_id = make_client(target=sql_store)
        manager = ReservationTransactionManager(sql_store, clock=lambda: date(2025, 1, 1))
        calculator = AvailabilityCalculator(sql_store)
        caller = CallerContext.for_caller("staff-1")

        reservation_id = manager.create_reservation({
            "client_id": client_id,
            "items": [{"product_id": product_id, "quantity": 3}],
            "start_date": "2025-03-01",
            "end_date": "2025-03-05",
        }, caller)

        assert calculator.check_availability(product_id, "2025-03-03", "2025-03-04", 3).max_available == 2
        with pytest.raises(InsufficientAvailabilityError):
            manager.create_reservation({
                "client_id": client_id,
                "items": [{"product_id": product_id, "quantity": 3}],
                "start_date": "2025-03-03",
                "end_date": "2025-03-04",
            }, caller)

        manager.cancel_reservation(reservation_id, caller)
        assert calculator.check_availability(product_id, "2025-03-03", "2025-03-04", 5).available is True


class TestStoreFailures:

    def test_database_errors_become_store_unavailable(self):
        session = MagicMock()
        session.get.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))
        store = SqlReservationStore(MagicMock(return_value=session))

        with pytest.raises(StoreUnavailableError):
            store.get_product("p1")

        session.rollback.assert_called_once()
        session.close.assert_called_once()

    def test_transaction_errors_become_store_unavailable(self):
        session = MagicMock()
        session.query.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))
        store = SqlReservationStore(MagicMock(return_value=session))

        with pytest.raises(StoreUnavailableError):
            store.run_atomic_transaction(lambda tx: tx.get_product("p1"))

        session.close.assert_called_once()
