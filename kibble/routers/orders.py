# kibble/routers/orders.py
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from kibble.carrier.waybill import WaybillClient, get_waybill_client
from kibble.core.auth import require_admin, require_user
from kibble.database import get_session
from kibble.models.customer import Customer
from kibble.repositories.order_repo import OrderRepository
from kibble.schemas.order import OrderRead, OrderStatusUpdate, OrderWithItemsRead
from kibble.schemas.shipping import TrackingInfo
from kibble.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])

order_repo = OrderRepository()
service = OrderService(order_repo)


# -------- Customer dashboard --------


@router.get("/me", response_model=list[OrderWithItemsRead])
def list_my_orders(
    session: Session = Depends(get_session),
    current_user: Customer = Depends(require_user),
    skip: int = 0,
    limit: int = 50,
):
    """
    The authenticated customer's orders, newest first, with items.
    """
    return service.list_user_orders(session, current_user.id, skip, limit)


@router.get("/me/{order_id}", response_model=OrderWithItemsRead)
def get_my_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: Customer = Depends(require_user),
):
    return service.get_user_order(session, current_user.id, order_id)


@router.get("/me/{order_id}/tracking", response_model=TrackingInfo)
def track_my_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: Customer = Depends(require_user),
    waybills: WaybillClient = Depends(get_waybill_client),
):
    """
    Live carrier status of the order's waybill.
    """
    return service.track_user_order(session, current_user.id, order_id, waybills)


# -------- Admin endpoints --------


@router.get(
    "",
    response_model=list[OrderWithItemsRead],
    dependencies=[Depends(require_admin)],
)
def list_all_orders(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
    user_id: uuid.UUID | None = None,
):
    """
    All orders with items, newest first (admin only).
    Pass `user_id` to see one customer's orders.
    """
    return service.list_all_orders(session, skip, limit, user_id)


@router.get(
    "/version",
    dependencies=[Depends(require_admin)],
)
def orders_version(session: Session = Depends(get_session)) -> dict[str, int]:
    """
    Changes whenever any order is created, updated or deleted.
    Admin consoles poll this and reload the list when it moves.
    """
    return {"version": service.list_version(session)}


@router.get(
    "/{order_id}",
    response_model=OrderWithItemsRead,
    dependencies=[Depends(require_admin)],
)
def get_order_admin(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    return service.get_order_admin(session, order_id)


@router.patch(
    "/{order_id}/status",
    response_model=OrderRead,
    dependencies=[Depends(require_admin)],
)
def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    session: Session = Depends(get_session),
):
    """
    Update order status (admin only).

      pending -> processing -> awaiting_shipment -> shipped -> delivered

    Forward moves may skip steps; any non-final order can be cancelled;
    delivered and cancelled are final.
    """
    return service.update_status(session, order_id, payload)


@router.delete(
    "/{order_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def delete_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Delete an order and its items (admin only).
    """
    service.delete_order(session, order_id)
    return None
