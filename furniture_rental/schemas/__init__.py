# Schemas package
from .product import ProductCreate, ProductUpdate, ProductResponse
from .client import ClientCreate, ClientResponse
from .reservation import (
    ReservationItemIn, ReservationItemResponse, ReservationCreate,
    ReservationStatusUpdate, ReservationResponse
)
from .availability import (
    AvailabilityCheckRequest, AvailabilityResult, MultiAvailabilityRequest,
    MultiAvailabilityResult, DayAvailability, AvailablePeriod, ProductOccupancy
)
from .pricing import (
    PricedItem, ItemPrice, ItemPriceBreakdown, ReservationPrice,
    DiscountResult, Quote, QuoteRequest, Deposit
)
