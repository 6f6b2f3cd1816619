import logging

from fastapi import APIRouter, Depends, status
from typing import List

from ..exceptions import ProductNotFoundError
from ..schemas.product import ProductCreate, ProductUpdate, ProductResponse
from ..store import ReservationStore
from ..utils.dependencies import get_reservation_store, get_caller_context
from ..utils.logging_config import get_logger
from ..utils.security import CallerContext

logger = get_logger(__name__)

router = APIRouter(prefix="/api/products", tags=["Products"])


@router.get("", response_model=List[ProductResponse])
@router.get("/", response_model=List[ProductResponse])
async def list_products(store: ReservationStore = Depends(get_reservation_store)):
    return store.list_products()


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str, store: ReservationStore = Depends(get_reservation_store)):
    product = store.get_product(product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
@router.post("/", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    product_data: ProductCreate,
    store: ReservationStore = Depends(get_reservation_store),
    caller: CallerContext = Depends(get_caller_context)
):
    caller.ensure_authorized()
    product_id = store.create_document("products", product_data.model_dump())
    logger.event(
        logging.INFO, "product_created", f"Product created: {product_data.name}",
        product_id=product_id, total_quantity=product_data.total_quantity
    )
    return store.get_product(product_id)


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: str,
    product_data: ProductUpdate,
    store: ReservationStore = Depends(get_reservation_store),
    caller: CallerContext = Depends(get_caller_context)
):
    """Partial update. Reducing total_quantity does not touch existing reservations."""
    caller.ensure_authorized()
    updated = store.update_document("products", product_id, product_data.model_dump(exclude_unset=True))
    if updated is None:
        raise ProductNotFoundError(product_id)
    return updated


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: str,
    store: ReservationStore = Depends(get_reservation_store),
    caller: CallerContext = Depends(get_caller_context)
):
    caller.ensure_authorized()
    if not store.delete_document("products", product_id):
        raise ProductNotFoundError(product_id)
