# kibble/services/order_service.py
import logging
import threading
import uuid
from collections.abc import Callable
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlmodel import Session

from kibble.carrier.transport import CarrierError
from kibble.carrier.waybill import WaybillClient
from kibble.models.order import Order, OrderItem
from kibble.repositories.order_repo import OrderRepository
from kibble.schemas.order import (
    STATUS_FLOW,
    TERMINAL_STATUSES,
    OrderItemRead,
    OrderRead,
    OrderStatusUpdate,
    OrderWithItemsRead,
    status_label,
)
from kibble.schemas.shipping import TrackingInfo

logger = logging.getLogger(__name__)

CacheKey = tuple[int, int, uuid.UUID | None]
Fingerprint = tuple[int, datetime | None]


class OrderListCache:
    """
    Admin order listing with an invalidate-and-reload policy.

    Cached pages are served only while the orders table fingerprint
    (row count, latest updated_at) stays the same, so writes from other
    workers or straight to the database show up on the next read. Order
    changes made here (checkout, status update, delete) also drop every
    page at once. `version` increases whenever the pages are dropped so
    clients can poll for changes cheaply.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._pages: dict[CacheKey, list[OrderWithItemsRead]] = {}
        self._fingerprint: Fingerprint | None = None
        self.version = 0

    def _drop(self) -> None:
        self._pages.clear()
        self._fingerprint = None
        self.version += 1

    def _sync(self, fingerprint: Fingerprint) -> None:
        # caller holds _lock
        if self._fingerprint is not None and self._fingerprint != fingerprint:
            self._drop()
        self._fingerprint = fingerprint

    def invalidate(self) -> None:
        with self._lock:
            self._drop()

    def current_version(self, fingerprint: Fingerprint) -> int:
        with self._lock:
            self._sync(fingerprint)
            return self.version

    def get_or_load(
        self,
        key: CacheKey,
        fingerprint: Fingerprint,
        loader: Callable[[], list[OrderWithItemsRead]],
    ) -> list[OrderWithItemsRead]:
        with self._lock:
            self._sync(fingerprint)
            cached = self._pages.get(key)
        if cached is not None:
            return cached

        page = loader()
        with self._lock:
            # Keep it only if nothing changed while the query ran
            if self._fingerprint == fingerprint:
                self._pages[key] = page
        return page


order_list_cache = OrderListCache()


def to_order_read(order: Order) -> OrderRead:
    return OrderRead(
        **order.model_dump(exclude={"waybill_ref"}),
        status_label=status_label(order.status),
    )


def to_order_with_items(order: Order, items: list[OrderItem]) -> OrderWithItemsRead:
    return OrderWithItemsRead(
        **to_order_read(order).model_dump(),
        items=[OrderItemRead(**item.model_dump()) for item in items],
    )


def can_transition(current: str, new: str) -> bool:
    """
    pending -> processing -> awaiting_shipment -> shipped -> delivered,
    forward only (steps may be skipped); cancelled from any non-terminal
    status; delivered and cancelled are final.
    """
    if current in TERMINAL_STATUSES:
        return False
    if new == "cancelled":
        return True
    if current not in STATUS_FLOW or new not in STATUS_FLOW:
        return False
    return STATUS_FLOW.index(new) > STATUS_FLOW.index(current)


class OrderService:
    """
    Order reads for customers and the admin console, status changes and
    deletion.
    """

    def __init__(self, order_repo: OrderRepository, cache: OrderListCache = order_list_cache):
        self.order_repo = order_repo
        self.cache = cache

    # -------- helpers --------

    def _with_items(self, session: Session, orders: list[Order]) -> list[OrderWithItemsRead]:
        items = self.order_repo.list_items_for_orders(session, [o.id for o in orders])
        by_order: dict[uuid.UUID, list[OrderItem]] = {}
        for item in items:
            by_order.setdefault(item.order_id, []).append(item)
        return [to_order_with_items(o, by_order.get(o.id, [])) for o in orders]

    def _get_order(self, session: Session, order_id: uuid.UUID) -> Order:
        order = self.order_repo.get_by_id(session, order_id)
        if not order:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )
        return order

    def _get_user_order(
        self,
        session: Session,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
    ) -> Order:
        order = self.order_repo.get_by_id(session, order_id)
        if not order or order.user_id != user_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order not found",
            )
        return order

    # -------- Customer dashboard --------

    def list_user_orders(
        self,
        session: Session,
        user_id: uuid.UUID,
        skip: int = 0,
        limit: int = 50,
    ) -> list[OrderWithItemsRead]:
        orders = self.order_repo.list_for_user(session, user_id, skip, limit)
        return self._with_items(session, orders)

    def get_user_order(
        self,
        session: Session,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
    ) -> OrderWithItemsRead:
        """
        404 if the order does not exist or belongs to someone else.
        """
        order = self._get_user_order(session, user_id, order_id)
        items = self.order_repo.list_items_for_order(session, order.id)
        return to_order_with_items(order, items)

    def track_user_order(
        self,
        session: Session,
        user_id: uuid.UUID,
        order_id: uuid.UUID,
        waybills: WaybillClient,
    ) -> TrackingInfo:
        order = self._get_user_order(session, user_id, order_id)
        try:
            return waybills.track_waybill(order.waybill_number, order.customer_phone)
        except CarrierError as exc:
            logger.warning("Tracking %s failed: %s", order.waybill_number, exc)
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Tracking is temporarily unavailable",
            )

    # -------- Admin console --------

    def list_all_orders(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        user_id: uuid.UUID | None = None,
    ) -> list[OrderWithItemsRead]:
        """
        All orders (optionally one customer's), newest first, with items.
        Served from the order list cache.
        """

        def load() -> list[OrderWithItemsRead]:
            if user_id is not None:
                orders = self.order_repo.list_for_user(session, user_id, skip, limit)
            else:
                orders = self.order_repo.list_all(session, skip, limit)
            return self._with_items(session, orders)

        fingerprint = self.order_repo.fingerprint(session)
        return self.cache.get_or_load((skip, limit, user_id), fingerprint, load)

    def list_version(self, session: Session) -> int:
        return self.cache.current_version(self.order_repo.fingerprint(session))

    def get_order_admin(self, session: Session, order_id: uuid.UUID) -> OrderWithItemsRead:
        order = self._get_order(session, order_id)
        items = self.order_repo.list_items_for_order(session, order.id)
        return to_order_with_items(order, items)

    def update_status(
        self,
        session: Session,
        order_id: uuid.UUID,
        payload: OrderStatusUpdate,
    ) -> OrderRead:
        """
        Admin-only status update. Any invalid transition raises 400.
        """
        order = self._get_order(session, order_id)

        current = order.status
        new = payload.status

        if current == new:
            return to_order_read(order)

        if not can_transition(current, new):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid status transition: {current} -> {new}",
            )

        order.status = new
        order.updated_at = datetime.now(timezone.utc)
        self.order_repo.update_order(session, order)
        session.commit()
        session.refresh(order)
        self.cache.invalidate()
        return to_order_read(order)

    def delete_order(self, session: Session, order_id: uuid.UUID) -> None:
        """
        Delete an order: its items first, then the order row.
        """
        order = self._get_order(session, order_id)
        removed = self.order_repo.delete_items_for_order(session, order.id)
        self.order_repo.delete_order(session, order)
        session.commit()
        self.cache.invalidate()
        logger.info("Deleted order %s with %d items", order_id, removed)
