"""
Shared fixtures: an isolated in-memory store per test plus factories for
products, clients and reservations.
"""

import os
import sys
from datetime import date

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from furniture_rental.services.reservation_service import ReservationTransactionManager
from furniture_rental.store.memory_store import InMemoryReservationStore
from furniture_rental.utils.security import CallerContext

# All booking dates in the tests are in March 2025
FIXED_TODAY = date(2025, 1, 1)


@pytest.fixture
def store():
    return InMemoryReservationStore()


@pytest.fixture
def caller():
    return CallerContext.for_caller("staff-1")


@pytest.fixture
def manager(store):
    return ReservationTransactionManager(store, clock=lambda: FIXED_TODAY)


@pytest.fixture
def make_product(store):
    def _make(name="Folding chair", total_quantity=5, price_per_day=1000, category="chair", target=None):
        return (target or store).create_document("products", {
            "name": name,
            "category": category,
            "total_quantity": total_quantity,
            "price_per_day": price_per_day,
        })
    return _make


@pytest.fixture
def make_client(store):
    def _make(name="Ana Rojas", target=None):
        return (target or store).create_document("clients", {"name": name, "email": "ana@example.com"})
    return _make


@pytest.fixture
def make_reservation(store):
    """Insert a reservation directly, bypassing availability checks"""
    def _make(items, start_date, end_date, status="confirmed", client_id="client-x", target=None):
        return (target or store).create_document("reservations", {
            "client_id": client_id,
            "items": [{"product_id": pid, "quantity": qty} for pid, qty in items],
            "start_date": start_date,
            "end_date": end_date,
            "status": status,
            "total_amount": 0,
        })
    return _make
