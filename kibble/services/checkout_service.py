# kibble/services/checkout_service.py
import logging
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from kibble.carrier.directory import ShippingDirectoryClient
from kibble.carrier.transport import CarrierError
from kibble.carrier.waybill import Recipient, Waybill, WaybillClient, cargo_weight
from kibble.core.config import get_settings
from kibble.core.weights import get_weight_option
from kibble.models.customer import Customer
from kibble.models.order import Order, OrderItem
from kibble.repositories.order_repo import OrderRepository
from kibble.repositories.product_repo import ProductRepository
from kibble.repositories.state_repo import StateRepository
from kibble.schemas.cart import CartLine
from kibble.schemas.checkout import CheckoutConfirmation, CheckoutDraft, CheckoutForm
from kibble.schemas.order import OrderWithItemsRead
from kibble.schemas.shipping import ShippingQuoteRequest, ShippingSelection
from kibble.services.cart_store import CartStore
from kibble.services.order_service import (
    OrderListCache,
    order_list_cache,
    to_order_with_items,
)

logger = logging.getLogger(__name__)

ORDER_FAILED = "Order creation failed"


def draft_key(owner_id: uuid.UUID) -> str:
    return f"checkout-form:{owner_id}"


class CheckoutGuard:
    """
    Rejects a second checkout for the same customer while one is running.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._active: set[uuid.UUID] = set()

    @contextmanager
    def hold(self, owner_id: uuid.UUID) -> Iterator[None]:
        with self._lock:
            if owner_id in self._active:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Checkout already in progress",
                )
            self._active.add(owner_id)
        try:
            yield
        finally:
            with self._lock:
                self._active.discard(owner_id)


checkout_guard = CheckoutGuard()


class CheckoutService:
    """
    Checkout orchestration.

    Steps:
      1. Load the cart; reject if empty or if a line is no longer sold.
      2. Quote shipping (a failed quote degrades to zero cost).
      3. Resolve city / warehouse refs into readable names.
      4. Create the waybill at the carrier (sender -> recipient -> document).
      5. Reject if an order with that waybill number already exists.
      6. Persist customer profile, order and items in one transaction;
         on failure cancel the freshly created waybill.
      7. Clear the cart and the saved checkout draft.

    Carrier failures surface as one generic 502 and are logged with the
    carrier's own message.
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        directory: ShippingDirectoryClient,
        waybills: WaybillClient,
        state_repo: StateRepository | None = None,
        guard: CheckoutGuard = checkout_guard,
        cache: OrderListCache = order_list_cache,
        product_repo: ProductRepository | None = None,
    ):
        self.order_repo = order_repo
        self.directory = directory
        self.waybills = waybills
        self.state_repo = state_repo or StateRepository()
        self.guard = guard
        self.cache = cache
        self.product_repo = product_repo or ProductRepository()

    # -------- Shipping quote --------

    def _quote(
        self,
        items: list[CartLine],
        total: float,
        city_ref: str,
        warehouse_ref: str,
    ) -> ShippingSelection:
        weight = cargo_weight(items, self.waybills.packaging_kg)
        return self.directory.quote_selection(
            city_ref,
            warehouse_ref,
            self.waybills.sender_city_ref,
            weight,
            total,
        )

    def quote_cart(
        self,
        session: Session,
        customer_id: uuid.UUID,
        payload: ShippingQuoteRequest,
    ) -> ShippingSelection:
        """
        Shipping selection for the current cart and a chosen warehouse.
        """
        store = CartStore(session, customer_id, self.state_repo)
        if store.is_empty():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cart is empty",
            )
        return self._quote(store.items, store.total, payload.city_ref, payload.warehouse_ref)

    # -------- Checkout --------

    def _drop_unavailable(self, session: Session, store: CartStore) -> None:
        """
        Remove cart lines whose product was deleted, deactivated or no longer
        offers the chosen package size, then reject the checkout with 400 so
        the customer can review the cart before any waybill is created.
        """
        stale: list[CartLine] = []
        for line in store.items:
            product = self.product_repo.get_by_id(session, line.id)
            if (
                product is None
                or not product.is_active
                or get_weight_option(product.weight_config, line.selected_weight) is None
            ):
                stale.append(line)
        if not stale:
            return

        for line in stale:
            store.remove_from_cart(line.id, line.selected_weight)
        names = ", ".join(line.name for line in stale)
        logger.info("Dropped unavailable cart lines for %s: %s", store.key, names)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"No longer available: {names}",
        )

    def checkout(
        self,
        session: Session,
        customer: Customer,
        form: CheckoutForm,
    ) -> CheckoutConfirmation:
        with self.guard.hold(customer.id):
            return self._checkout(session, customer, form)

    def _checkout(
        self,
        session: Session,
        customer: Customer,
        form: CheckoutForm,
    ) -> CheckoutConfirmation:
        # 1) Cart
        store = CartStore(session, customer.id, self.state_repo)
        if store.is_empty():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cart is empty",
            )
        self._drop_unavailable(session, store)
        items = [item.model_copy() for item in store.items]
        total = store.total

        # 2) Shipping selection (non-fatal)
        shipping = self._quote(items, total, form.city_ref, form.warehouse_ref)

        # 3-4) Carrier: readable address + waybill
        recipient = Recipient(
            first_name=form.first_name,
            last_name=form.last_name,
            middle_name=form.middle_name,
            phone=form.phone,
            city_ref=form.city_ref,
            warehouse_ref=form.warehouse_ref,
        )
        try:
            city_name = self.directory.resolve_city_name(form.city_ref)
            warehouse_name = self.directory.resolve_warehouse_name(form.warehouse_ref)
            waybill = self.waybills.create_shipment(
                recipient,
                items,
                declared_value=total,
                payer_type=form.payer_type,
                payment_method=form.payment_method,
            )
        except CarrierError as exc:
            logger.error("Checkout for customer %s aborted: %s", customer.id, exc)
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=ORDER_FAILED,
            )

        # 5) Duplicate submission
        if self.order_repo.get_by_waybill(session, waybill.number) is not None:
            logger.warning("Waybill %s already has an order", waybill.number)
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Order already exists for this waybill",
            )

        # 6) Persist
        try:
            order = self._persist(
                session, customer, form, items, total, shipping, waybill,
                city_name, warehouse_name,
            )
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Saving order for waybill %s failed: %s", waybill.number, exc)
            self._cancel_waybill(waybill)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=ORDER_FAILED,
            )
        self.cache.invalidate()
        logger.info("Order %s created with waybill %s", order.id, waybill.number)
        confirmation = CheckoutConfirmation(
            order=order,
            shipping=shipping,
            waybill_number=waybill.number,
        )

        # 7) Clear cart + draft
        store.clear_cart()
        self.state_repo.delete(session, draft_key(customer.id))

        return confirmation

    def _persist(
        self,
        session: Session,
        customer: Customer,
        form: CheckoutForm,
        items: list[CartLine],
        total: float,
        shipping: ShippingSelection,
        waybill: Waybill,
        city_name: str,
        warehouse_name: str,
    ) -> OrderWithItemsRead:
        now = datetime.now(timezone.utc)

        customer.name = form.full_name
        customer.phone = form.phone
        customer.updated_at = now
        session.add(customer)

        order = self.order_repo.create_order(
            session,
            Order(
                user_id=customer.id,
                customer_name=form.full_name,
                customer_email=str(form.email),
                customer_phone=form.phone,
                shipping_address=warehouse_name,
                shipping_city=city_name,
                total_amount=total,
                shipping_cost=shipping.cost,
                status="pending",
                waybill_number=waybill.number,
                waybill_ref=waybill.ref,
                created_at=now,
                updated_at=now,
            ),
        )

        order_items = self.order_repo.create_items(
            session,
            [
                OrderItem(
                    order_id=order.id,
                    product_id=line.id,
                    product_name=line.name,
                    quantity=line.quantity,
                    price_at_time=round(line.price, 2),
                    total_price=round(line.price * line.quantity, 2),
                    selected_weight=line.selected_weight,
                )
                for line in items
            ],
        )

        session.commit()
        session.refresh(order)
        for item in order_items:
            session.refresh(item)
        return to_order_with_items(order, order_items)

    def _cancel_waybill(self, waybill: Waybill) -> None:
        """
        Compensating action for a waybill whose order could not be saved.
        """
        try:
            self.waybills.delete_waybill(waybill.ref)
            logger.info("Cancelled orphaned waybill %s", waybill.number)
        except CarrierError:
            logger.exception(
                "Could not cancel waybill %s; it has no matching order",
                waybill.number,
            )

    # -------- Draft form --------

    def save_draft(
        self,
        session: Session,
        customer_id: uuid.UUID,
        draft: CheckoutDraft,
    ) -> CheckoutDraft:
        ttl = timedelta(days=get_settings().CHECKOUT_DRAFT_TTL_DAYS)
        self.state_repo.set(
            session,
            draft_key(customer_id),
            draft.model_dump(exclude_none=True),
            expires_at=datetime.now(timezone.utc) + ttl,
        )
        return draft

    def get_draft(self, session: Session, customer: Customer) -> CheckoutDraft:
        """
        The saved draft, or values prefilled from the profile and the
        customer's latest order.
        """
        saved = self.state_repo.get(session, draft_key(customer.id))
        if saved is not None:
            return CheckoutDraft.model_validate(saved)

        draft = CheckoutDraft(email=customer.email, phone=customer.phone)
        latest = self.order_repo.latest_for_user(session, customer.id)
        if latest is not None:
            # customer_name is stored as "Last First [Middle]"
            parts = latest.customer_name.split()
            if len(parts) >= 2:
                draft.last_name, draft.first_name = parts[0], parts[1]
                draft.middle_name = parts[2] if len(parts) > 2 else None
            draft.phone = draft.phone or latest.customer_phone
            draft.shipping_city = latest.shipping_city
            draft.shipping_address = latest.shipping_address
        return draft

    def clear_draft(self, session: Session, customer_id: uuid.UUID) -> None:
        self.state_repo.delete(session, draft_key(customer_id))
