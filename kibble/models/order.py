# kibble/models/order.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Order(SQLModel, table=True):
    """
    Customer order, created once at successful checkout.

    Shipping address fields hold human-readable descriptions resolved from
    the carrier directory, not carrier refs.
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="customers.id",
        index=True,
    )

    customer_name: str = Field(description="Recipient full name")
    customer_email: str = Field(description="Contact email")
    customer_phone: str = Field(description="Contact phone number")

    shipping_address: str = Field(
        description="Carrier warehouse description",
    )
    shipping_city: str = Field(
        description="Carrier city description",
    )

    total_amount: float = Field(
        description="Sum of price_at_time * quantity over all items",
    )

    shipping_cost: float = Field(
        default=0.0,
        description="Quoted carrier cost at checkout (0 if the quote failed)",
    )

    # pending | processing | awaiting_shipment | shipped | delivered | cancelled
    status: str = Field(
        default="pending",
        index=True,
        description="Order status lifecycle",
    )

    waybill_number: str = Field(
        unique=True,
        index=True,
        description="Carrier waybill number (IntDocNumber)",
    )

    waybill_ref: str | None = Field(
        default=None,
        description="Carrier document ref, used to cancel the waybill",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last status change (UTC)",
    )


class OrderItem(SQLModel, table=True):
    """
    Line item inside an order.

    price_at_time is captured at checkout and never changes afterwards.
    """

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    product_name: str

    quantity: int = Field(
        gt=0,
        description="Quantity ordered (>=1)",
    )

    price_at_time: float = Field(
        description="Unit price at time of order",
    )

    total_price: float = Field(
        description="price_at_time * quantity",
    )

    selected_weight: int = Field(
        description="Package size in grams",
    )
