# kibble/schemas/shipping.py
from pydantic import ConfigDict
from sqlmodel import SQLModel


class AreaRead(SQLModel):
    ref: str
    description: str


class CityRead(SQLModel):
    ref: str
    description: str
    area_description: str | None = None


class WarehouseRead(SQLModel):
    ref: str
    description: str
    number: str = ""
    city_ref: str = ""


class WarehousePage(SQLModel):
    """
    One page of warehouses. `has_more` is False once a short page is returned.
    """

    items: list[WarehouseRead]
    page: int
    page_size: int
    has_more: bool


class ShippingQuote(SQLModel):
    cost: float
    estimated_delivery_date: str = ""


class ShippingSelection(SQLModel):
    """
    Shipping choice for the current checkout. Never persisted.

    city / warehouse are carrier refs.
    """

    city: str
    warehouse: str
    cost: float
    estimated_delivery_date: str = ""


class ShippingQuoteRequest(SQLModel):
    """
    Quote shipping of the current cart to a carrier warehouse.
    """

    model_config = ConfigDict(extra="forbid")

    city_ref: str
    warehouse_ref: str


class TrackingInfo(SQLModel):
    number: str
    status: str
    warehouse_sender: str | None = None
    warehouse_recipient: str | None = None
    scheduled_delivery_date: str | None = None
