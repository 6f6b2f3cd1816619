from fastapi import APIRouter, Depends, status
from typing import List

from ..exceptions import ClientNotFoundError
from ..schemas.client import ClientCreate, ClientResponse
from ..schemas.reservation import ReservationResponse
from ..services.reservation_service import ReservationTransactionManager
from ..store import ReservationStore
from ..utils.dependencies import get_reservation_store, get_caller_context, get_reservation_manager
from ..utils.security import CallerContext

router = APIRouter(prefix="/api/clients", tags=["Clients"])


@router.get("", response_model=List[ClientResponse])
@router.get("/", response_model=List[ClientResponse])
async def list_clients(store: ReservationStore = Depends(get_reservation_store)):
    return store.list_clients()


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(client_id: str, store: ReservationStore = Depends(get_reservation_store)):
    client = store.get_client(client_id)
    if client is None:
        raise ClientNotFoundError(client_id)
    return client


@router.post("", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
@router.post("/", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
async def create_client(
    client_data: ClientCreate,
    store: ReservationStore = Depends(get_reservation_store),
    caller: CallerContext = Depends(get_caller_context)
):
    caller.ensure_authorized()
    client_id = store.create_document("clients", client_data.model_dump())
    return store.get_client(client_id)


@router.get("/{client_id}/reservations", response_model=List[ReservationResponse])
async def list_client_reservations(
    client_id: str,
    store: ReservationStore = Depends(get_reservation_store),
    manager: ReservationTransactionManager = Depends(get_reservation_manager)
):
    if store.get_client(client_id) is None:
        raise ClientNotFoundError(client_id)
    return manager.list_client_reservations(client_id)
