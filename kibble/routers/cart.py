# kibble/routers/cart.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from kibble.core.auth import require_user
from kibble.database import get_session
from kibble.models.customer import Customer
from kibble.repositories.product_repo import ProductRepository
from kibble.schemas.cart import CartItemCreate, CartItemUpdate, CartSummary
from kibble.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["Cart"])

product_repo = ProductRepository()
service = CartService(product_repo)


@router.get("", response_model=CartSummary)
def get_my_cart(
    session: Session = Depends(get_session),
    current_user: Customer = Depends(require_user),
):
    """
    Get current customer's cart summary.

    Auth:
      - Only role='user' (customer) can access.
      - Admins are forbidden.
    """
    return service.get_cart_summary(session, current_user.id)


@router.post("", response_model=CartSummary)
def add_to_cart(
    payload: CartItemCreate,
    session: Session = Depends(get_session),
    current_user: Customer = Depends(require_user),
):
    """
    Add a product package to the cart.

    Adding the same product at the same weight again increases the quantity
    of the existing line.
    """
    return service.add_to_cart(session, current_user.id, payload)


@router.patch("/{product_id}", response_model=CartSummary)
def update_cart_item(
    product_id: uuid.UUID,
    payload: CartItemUpdate,
    session: Session = Depends(get_session),
    current_user: Customer = Depends(require_user),
):
    """
    Set the quantity of the (product_id, selected_weight) line.
    Quantity 0 removes the line.
    """
    return service.update_quantity(
        session=session,
        user_id=current_user.id,
        product_id=product_id,
        payload=payload,
    )


@router.delete("/{product_id}", response_model=CartSummary)
def remove_cart_item(
    product_id: uuid.UUID,
    selected_weight: int,
    session: Session = Depends(get_session),
    current_user: Customer = Depends(require_user),
):
    """
    Remove one package size of a product from the cart.
    """
    return service.remove_item(session, current_user.id, product_id, selected_weight)


@router.delete("", response_model=CartSummary)
def clear_cart(
    session: Session = Depends(get_session),
    current_user: Customer = Depends(require_user),
):
    """
    Clear the entire cart.
    """
    return service.clear_cart(session, current_user.id)
