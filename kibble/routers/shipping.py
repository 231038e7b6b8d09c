# kibble/routers/shipping.py
import logging
from collections.abc import Callable
from typing import TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session

from kibble.carrier.directory import ShippingDirectoryClient, get_shipping_directory
from kibble.carrier.transport import CarrierError
from kibble.carrier.waybill import WaybillClient, get_waybill_client
from kibble.core.auth import require_user
from kibble.core.config import get_settings
from kibble.database import get_session
from kibble.models.customer import Customer
from kibble.repositories.order_repo import OrderRepository
from kibble.schemas.shipping import (
    AreaRead,
    CityRead,
    ShippingQuoteRequest,
    ShippingSelection,
    WarehousePage,
)
from kibble.services.checkout_service import CheckoutService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/shipping", tags=["Shipping"])

order_repo = OrderRepository()

T = TypeVar("T")


def _lookup(fn: Callable[[], T]) -> T:
    try:
        return fn()
    except CarrierError as exc:
        logger.warning("Directory lookup failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Shipping directory is temporarily unavailable",
        )


@router.get("/areas", response_model=list[AreaRead])
def list_areas(directory: ShippingDirectoryClient = Depends(get_shipping_directory)):
    return _lookup(directory.list_areas)


@router.get("/cities", response_model=list[CityRead])
def list_cities(
    area_ref: str,
    directory: ShippingDirectoryClient = Depends(get_shipping_directory),
):
    """
    Cities of one area (pick the area from /shipping/areas first).
    """
    return _lookup(lambda: directory.list_cities(area_ref))


@router.get("/warehouses", response_model=WarehousePage)
def list_warehouses(
    city_ref: str,
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1, le=500),
    directory: ShippingDirectoryClient = Depends(get_shipping_directory),
):
    """
    One page of warehouses in a city.

    Keep requesting the next page while `has_more` is true.
    """
    size = page_size or get_settings().WAREHOUSE_PAGE_SIZE
    items = _lookup(lambda: directory.list_warehouses(city_ref, page=page, page_size=size))
    return WarehousePage(
        items=items,
        page=page,
        page_size=size,
        has_more=len(items) == size,
    )


@router.post("/quote", response_model=ShippingSelection)
def quote_cart(
    payload: ShippingQuoteRequest,
    session: Session = Depends(get_session),
    current_user: Customer = Depends(require_user),
    directory: ShippingDirectoryClient = Depends(get_shipping_directory),
    waybills: WaybillClient = Depends(get_waybill_client),
):
    """
    Shipping cost and delivery date for the current cart.

    If the carrier cannot quote, cost is 0 and the date is empty.
    """
    service = CheckoutService(order_repo, directory, waybills)
    return service.quote_cart(session, current_user.id, payload)
