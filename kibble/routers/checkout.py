# kibble/routers/checkout.py
from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from kibble.carrier.directory import ShippingDirectoryClient, get_shipping_directory
from kibble.carrier.waybill import WaybillClient, get_waybill_client
from kibble.core.auth import require_user
from kibble.database import get_session
from kibble.models.customer import Customer
from kibble.repositories.order_repo import OrderRepository
from kibble.schemas.checkout import CheckoutConfirmation, CheckoutDraft, CheckoutForm
from kibble.services.checkout_service import CheckoutService

router = APIRouter(prefix="/checkout", tags=["Checkout"])

order_repo = OrderRepository()


def get_checkout_service(
    directory: ShippingDirectoryClient = Depends(get_shipping_directory),
    waybills: WaybillClient = Depends(get_waybill_client),
) -> CheckoutService:
    return CheckoutService(order_repo, directory, waybills)


@router.post(
    "",
    response_model=CheckoutConfirmation,
    status_code=status.HTTP_201_CREATED,
)
def checkout(
    payload: CheckoutForm,
    session: Session = Depends(get_session),
    current_user: Customer = Depends(require_user),
    service: CheckoutService = Depends(get_checkout_service),
):
    """
    Turn the current cart into a carrier waybill and an order.

    Errors:
      - 400 cart is empty
      - 409 a checkout is already running, or the waybill already has an order
      - 502 the carrier rejected any step
      - 500 the order could not be saved (the waybill is cancelled)
    """
    return service.checkout(session, current_user, payload)


@router.get("/draft", response_model=CheckoutDraft)
def get_draft(
    session: Session = Depends(get_session),
    current_user: Customer = Depends(require_user),
    service: CheckoutService = Depends(get_checkout_service),
):
    """
    Saved form values, or a prefill from the profile and last order.
    """
    return service.get_draft(session, current_user)


@router.put("/draft", response_model=CheckoutDraft)
def save_draft(
    payload: CheckoutDraft,
    session: Session = Depends(get_session),
    current_user: Customer = Depends(require_user),
    service: CheckoutService = Depends(get_checkout_service),
):
    return service.save_draft(session, current_user.id, payload)


@router.delete("/draft", status_code=status.HTTP_204_NO_CONTENT)
def clear_draft(
    session: Session = Depends(get_session),
    current_user: Customer = Depends(require_user),
    service: CheckoutService = Depends(get_checkout_service),
):
    service.clear_draft(session, current_user.id)
    return None
