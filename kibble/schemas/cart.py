# kibble/schemas/cart.py
import uuid

from sqlmodel import SQLModel, Field


class CartLine(SQLModel):
    """
    One line of the cart: a product at one package size.

    Uniqueness key is (id, selected_weight): the same product in two
    package sizes is two lines.
    """

    id: uuid.UUID = Field(description="Product id")
    name: str
    price: float = Field(description="Unit price for the selected weight")
    quantity: int = Field(ge=1)
    selected_weight: int = Field(description="Package size in grams")
    image: str | None = None
    category: str = Field(description="Animal type: cat | dog | fish")
    type: str = Field(description="Food category: dry | wet | ...")


class CartItemCreate(SQLModel):
    """
    Payload for adding to cart.
    """

    product_id: uuid.UUID
    selected_weight: int
    quantity: int = Field(default=1, gt=0)


class CartItemUpdate(SQLModel):
    """
    Payload for setting the quantity of one cart line.
    """

    selected_weight: int
    quantity: int = Field(ge=0, description="0 removes the line")


class CartLineRead(CartLine):
    """
    Cart line including line_total.
    """

    line_total: float


class CartSummary(SQLModel):
    """
    Full cart response model with totals.
    """

    items: list[CartLineRead]
    total_quantity: int
    total_price: float
