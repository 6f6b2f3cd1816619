# Models package
from .product import Product, ProductCategory
from .client import Client
from .reservation import Reservation, ReservationItem, ReservationStatus, STATUS_TRANSITIONS

__all__ = [
    "Product", "ProductCategory",
    "Client",
    "Reservation", "ReservationItem", "ReservationStatus", "STATUS_TRANSITIONS",
]
