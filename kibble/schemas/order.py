# kibble/schemas/order.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict
from sqlmodel import SQLModel

OrderStatus = Literal[
    "pending",
    "processing",
    "awaiting_shipment",
    "shipped",
    "delivered",
    "cancelled",
]

# Forward chain; cancelled is reachable from any non-terminal status.
STATUS_FLOW: tuple[str, ...] = (
    "pending",
    "processing",
    "awaiting_shipment",
    "shipped",
    "delivered",
)
TERMINAL_STATUSES = {"delivered", "cancelled"}

STATUS_LABELS: dict[str, str] = {
    "pending": "Очікує обробки",
    "processing": "В обробці",
    "awaiting_shipment": "Очікує відправлення",
    "shipped": "Відправлено",
    "delivered": "Доставлено",
    "cancelled": "Скасовано",
}


def status_label(status: str) -> str:
    """Customer-facing label for a status."""
    return STATUS_LABELS.get(status, "Невідомо")


class OrderItemRead(SQLModel):
    """
    Representation of a single order line item.
    """

    id: uuid.UUID
    order_id: uuid.UUID
    product_id: uuid.UUID
    product_name: str
    quantity: int
    price_at_time: float
    total_price: float
    selected_weight: int


class OrderRead(SQLModel):
    """
    Lightweight representation of an order (without items).
    """

    id: uuid.UUID
    user_id: uuid.UUID
    customer_name: str
    customer_email: str
    customer_phone: str
    shipping_address: str
    shipping_city: str
    total_amount: float
    shipping_cost: float
    status: OrderStatus
    status_label: str
    waybill_number: str
    created_at: datetime
    updated_at: datetime


class OrderWithItemsRead(OrderRead):
    """
    Full order view including items.
    """

    items: list[OrderItemRead]


class OrderStatusUpdate(SQLModel):
    """
    Admin payload to change order status.
    """

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus
