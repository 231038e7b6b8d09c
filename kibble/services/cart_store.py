# kibble/services/cart_store.py
import uuid
from collections.abc import Callable

from sqlmodel import Session

from kibble.repositories.state_repo import StateRepository
from kibble.schemas.cart import CartLine

CartListener = Callable[["CartStore"], None]


def cart_key(owner_id: uuid.UUID) -> str:
    return f"cart:{owner_id}"


def cart_total(items: list[CartLine]) -> float:
    return round(sum(item.price * item.quantity for item in items), 2)


class CartStore:
    """
    Working set of cart lines for one owner, mirrored to persisted_state.

    Every mutation:
      - recomputes `total`
      - writes the full snapshot under "cart:<owner_id>"
      - notifies subscribed listeners (badge counters etc.)

    Lines are keyed by (id, selected_weight). Quantities are always >= 1:
    setting a quantity below 1 removes the line.
    """

    def __init__(
        self,
        session: Session,
        owner_id: uuid.UUID,
        repo: StateRepository | None = None,
    ):
        self.session = session
        self.key = cart_key(owner_id)
        self.repo = repo or StateRepository()
        self._listeners: list[CartListener] = []

        snapshot = self.repo.get(session, self.key) or []
        self.items: list[CartLine] = [CartLine.model_validate(raw) for raw in snapshot]
        self.total = cart_total(self.items)

    # ----- observers -----

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        """
        Register a cart-changed listener. Returns an unsubscribe function.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ----- queries -----

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    def is_empty(self) -> bool:
        return not self.items

    def find(self, product_id: uuid.UUID, selected_weight: int) -> CartLine | None:
        for item in self.items:
            if item.id == product_id and item.selected_weight == selected_weight:
                return item
        return None

    # ----- mutations -----

    def add_to_cart(self, item: CartLine) -> None:
        """
        Add a line, or increase the quantity of the matching
        (id, selected_weight) line by item.quantity.
        """
        existing = self.find(item.id, item.selected_weight)
        if existing is not None:
            existing.quantity += item.quantity
        else:
            self.items.append(item.model_copy())
        self._changed()

    def remove_from_cart(self, product_id: uuid.UUID, selected_weight: int) -> bool:
        """
        Remove the (product_id, selected_weight) line.
        Returns False if no such line exists.
        """
        existing = self.find(product_id, selected_weight)
        if existing is None:
            return False
        self.items.remove(existing)
        self._changed()
        return True

    def update_quantity(
        self,
        product_id: uuid.UUID,
        selected_weight: int,
        quantity: int,
    ) -> bool:
        """
        Set the quantity of one line. quantity < 1 removes the line.
        Returns False if no such line exists.
        """
        existing = self.find(product_id, selected_weight)
        if existing is None:
            return False
        if quantity < 1:
            self.items.remove(existing)
        else:
            existing.quantity = quantity
        self._changed()
        return True

    def clear_cart(self) -> None:
        self.items = []
        self.total = 0.0
        self.repo.delete(self.session, self.key)
        self._notify()

    # ----- internals -----

    def _changed(self) -> None:
        self.total = cart_total(self.items)
        self.repo.set(
            self.session,
            self.key,
            [item.model_dump(mode="json") for item in self.items],
        )
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
