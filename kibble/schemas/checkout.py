# kibble/schemas/checkout.py
import re
from typing import Literal

from pydantic import ConfigDict, EmailStr, field_validator
from sqlmodel import SQLModel, Field

from kibble.schemas.order import OrderWithItemsRead
from kibble.schemas.shipping import ShippingSelection

PayerType = Literal["Sender", "Recipient"]
PaymentMethod = Literal["Cash", "NonCash"]

PHONE_RE = re.compile(r"^\+?[0-9]{10,12}$")


class CheckoutForm(SQLModel):
    """
    Checkout form submitted by the customer.

    Validation runs before any carrier call; failures come back as 422 with
    one entry per offending field.

    city_ref / warehouse_ref are carrier refs chosen through the
    /shipping directory endpoints.
    """

    model_config = ConfigDict(extra="forbid")

    first_name: str = Field(max_length=50)
    last_name: str = Field(max_length=50)
    middle_name: str | None = Field(default=None, max_length=50)
    phone: str
    email: EmailStr
    city_ref: str
    warehouse_ref: str
    payer_type: PayerType = "Recipient"
    payment_method: PaymentMethod = "Cash"

    @field_validator("first_name", "last_name", "city_ref", "warehouse_ref")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("middle_name")
    @classmethod
    def normalize_middle_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        v = v.strip().replace(" ", "")
        if not PHONE_RE.match(v):
            raise ValueError("enter a valid phone number, e.g. +380501234567")
        return v

    @property
    def full_name(self) -> str:
        parts = [self.last_name, self.first_name, self.middle_name]
        return " ".join(p for p in parts if p)


class CheckoutDraft(SQLModel):
    """
    Partially filled checkout form, saved while the customer types.

    Everything is optional; nothing is validated beyond types.
    """

    model_config = ConfigDict(extra="forbid")

    first_name: str | None = None
    last_name: str | None = None
    middle_name: str | None = None
    phone: str | None = None
    email: str | None = None
    city_ref: str | None = None
    warehouse_ref: str | None = None
    payer_type: PayerType | None = None
    payment_method: PaymentMethod | None = None
    # Human-readable values from the customer's last order (prefill only)
    shipping_city: str | None = None
    shipping_address: str | None = None


class CheckoutConfirmation(SQLModel):
    """
    Response of a successful checkout.
    """

    order: OrderWithItemsRead
    shipping: ShippingSelection
    waybill_number: str
