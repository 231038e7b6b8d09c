# kibble/services/cart_service.py
import uuid

from fastapi import HTTPException, status
from sqlmodel import Session

from kibble.core.weights import get_weight_option, price_for_weight
from kibble.models.product import Product
from kibble.repositories.product_repo import ProductRepository
from kibble.schemas.cart import (
    CartItemCreate,
    CartItemUpdate,
    CartLine,
    CartLineRead,
    CartSummary,
)
from kibble.services.cart_store import CartStore


def summarize(store: CartStore) -> CartSummary:
    """
    Cart summary: lines with line_total, total quantity, total price.
    """
    return CartSummary(
        items=[
            CartLineRead(
                **item.model_dump(),
                line_total=round(item.price * item.quantity, 2),
            )
            for item in store.items
        ],
        total_quantity=store.total_quantity,
        total_price=store.total,
    )


class CartService:
    """
    Business logic for cart operations.

    Responsibilities:
      - ensure only 'user' accounts use cart (via router dependency)
      - validate product existence, active flag and package size
      - price the chosen package size from the product's base price
      - delegate line bookkeeping to CartStore
    """

    def __init__(self, product_repo: ProductRepository):
        self.product_repo = product_repo

    # ---- internal helpers ----

    def _get_valid_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.product_repo.get_by_id(session, product_id)
        if not product:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Product not found",
            )
        if not product.is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Product is inactive",
            )
        return product

    def build_line(
        self,
        session: Session,
        product_id: uuid.UUID,
        selected_weight: int,
        quantity: int,
    ) -> CartLine:
        """
        Resolve a product + package size into a priced cart line.
        """
        product = self._get_valid_product(session, product_id)
        option = get_weight_option(product.weight_config, selected_weight)
        if option is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Weight option not available for this product",
            )
        return CartLine(
            id=product.id,
            name=product.name,
            price=price_for_weight(product.price, option),
            quantity=quantity,
            selected_weight=selected_weight,
            image=product.image_url,
            category=product.animal_type,
            type=product.category,
        )

    # ---- public operations ----

    def get_cart_summary(self, session: Session, user_id: uuid.UUID) -> CartSummary:
        return summarize(CartStore(session, user_id))

    def add_to_cart(
        self,
        session: Session,
        user_id: uuid.UUID,
        payload: CartItemCreate,
    ) -> CartSummary:
        """
        Add a product package to the cart; the same package twice increases
        the quantity of one line.
        """
        line = self.build_line(
            session, payload.product_id, payload.selected_weight, payload.quantity
        )
        store = CartStore(session, user_id)
        store.add_to_cart(line)
        return summarize(store)

    def update_quantity(
        self,
        session: Session,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
        payload: CartItemUpdate,
    ) -> CartSummary:
        store = CartStore(session, user_id)
        if not store.update_quantity(product_id, payload.selected_weight, payload.quantity):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Item not in cart",
            )
        return summarize(store)

    def remove_item(
        self,
        session: Session,
        user_id: uuid.UUID,
        product_id: uuid.UUID,
        selected_weight: int,
    ) -> CartSummary:
        store = CartStore(session, user_id)
        if not store.remove_from_cart(product_id, selected_weight):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Item not found in cart",
            )
        return summarize(store)

    def clear_cart(self, session: Session, user_id: uuid.UUID) -> CartSummary:
        store = CartStore(session, user_id)
        store.clear_cart()
        return summarize(store)
