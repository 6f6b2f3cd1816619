from fastapi import APIRouter, Depends, Query, Request, status
from typing import List, Optional

from ..models.reservation import ReservationStatus
from ..schemas.reservation import ReservationCreate, ReservationResponse, ReservationStatusUpdate
from ..services.reservation_service import ReservationTransactionManager
from ..utils.dependencies import get_caller_context, get_reservation_manager
from ..utils.rate_limiter import limiter, get_rate_limit
from ..utils.security import CallerContext

router = APIRouter(prefix="/api/reservations", tags=["Reservations"])


@router.get("", response_model=List[ReservationResponse])
@router.get("/", response_model=List[ReservationResponse])
async def list_reservations(
    status_filter: Optional[ReservationStatus] = Query(None, alias="status"),
    manager: ReservationTransactionManager = Depends(get_reservation_manager)
):
    return manager.list_reservations(status_filter)


@router.get("/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(
    reservation_id: str,
    manager: ReservationTransactionManager = Depends(get_reservation_manager)
):
    return manager.get_reservation(reservation_id)


@router.post("", response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
@router.post("/", response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(get_rate_limit("reservation_create"))
def create_reservation(
    request: Request,
    reservation_data: ReservationCreate,
    manager: ReservationTransactionManager = Depends(get_reservation_manager),
    caller: CallerContext = Depends(get_caller_context)
):
    """
    Create a reservation. Availability of every item is re-checked
    atomically; 409 when any product is short or the commit keeps conflicting.

    Plain def so FastAPI runs it in the threadpool; commit retries sleep.
    """
    reservation_id = manager.create_reservation(reservation_data, caller)
    return manager.get_reservation(reservation_id)


@router.patch("/{reservation_id}/status", response_model=ReservationResponse)
def update_reservation_status(
    reservation_id: str,
    payload: ReservationStatusUpdate,
    manager: ReservationTransactionManager = Depends(get_reservation_manager),
    caller: CallerContext = Depends(get_caller_context)
):
    return manager.update_reservation_status(reservation_id, payload.status, caller)


@router.post("/{reservation_id}/cancel", response_model=ReservationResponse)
def cancel_reservation(
    reservation_id: str,
    manager: ReservationTransactionManager = Depends(get_reservation_manager),
    caller: CallerContext = Depends(get_caller_context)
):
    return manager.cancel_reservation(reservation_id, caller)
