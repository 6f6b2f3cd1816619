# Store package
from functools import lru_cache

from ..config import settings
from .base import CommitConflict, ReservationStore, StoreTransaction
from .memory_store import InMemoryReservationStore
from .sql_store import SqlReservationStore


@lru_cache()
def get_store() -> ReservationStore:
    """Process-wide store selected by STORE_BACKEND"""
    if settings.store_backend == "memory":
        return InMemoryReservationStore()

    from ..database import SessionLocal
    return SqlReservationStore(SessionLocal)


__all__ = [
    "CommitConflict", "ReservationStore", "StoreTransaction",
    "InMemoryReservationStore", "SqlReservationStore", "get_store",
]
