# kibble/carrier/directory.py
"""
Shipping directory: the carrier's address hierarchy (areas -> cities ->
warehouses), reverse lookups for human-readable names, and shipping cost
quotes.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import date
from functools import lru_cache

from kibble.carrier.transport import CarrierError, NovaPoshtaTransport, get_transport
from kibble.core.config import get_settings
from kibble.schemas.shipping import (
    AreaRead,
    CityRead,
    ShippingQuote,
    ShippingSelection,
    WarehouseRead,
)

logger = logging.getLogger(__name__)

SERVICE_TYPE = "WarehouseWarehouse"


def carrier_date(value: date | None = None) -> str:
    """Carrier APIs expect dd.mm.yyyy."""
    return (value or date.today()).strftime("%d.%m.%Y")


def _warehouse(record: dict) -> WarehouseRead:
    return WarehouseRead(
        ref=record["Ref"],
        description=record["Description"],
        number=str(record.get("Number", "")),
        city_ref=record.get("CityRef", ""),
    )


class ShippingDirectoryClient:
    """
    Read-only carrier lookups used by checkout and the address picker.
    """

    def __init__(self, transport: NovaPoshtaTransport, warehouse_type_ref: str):
        self.transport = transport
        self.warehouse_type_ref = warehouse_type_ref

    # ----- Address hierarchy -----

    def list_areas(self) -> list[AreaRead]:
        data = self.transport.call("Address", "getAreas")
        return [AreaRead(ref=r["Ref"], description=r["Description"]) for r in data]

    def list_cities(self, area_ref: str) -> list[CityRead]:
        """
        Cities of one area. Query areas first and pass the area ref here.
        """
        data = self.transport.call(
            "Address",
            "getCities",
            {"AreaRef": area_ref, "Limit": 1000},
        )
        return [
            CityRead(
                ref=r["Ref"],
                description=r["Description"],
                area_description=r.get("AreaDescription"),
            )
            for r in data
        ]

    def list_warehouses(
        self,
        city_ref: str,
        page: int = 1,
        page_size: int = 50,
    ) -> list[WarehouseRead]:
        """
        One page of warehouses in a city. A page shorter than `page_size`
        is the last one.
        """
        data = self.transport.call(
            "Address",
            "getWarehouses",
            {"CityRef": city_ref, "Page": str(page), "Limit": str(page_size)},
        )
        return [_warehouse(r) for r in data]

    def iter_warehouses(self, city_ref: str, page_size: int = 50) -> Iterator[WarehouseRead]:
        """
        Yield every warehouse in a city, page by page, stopping after the
        first short page.
        """
        page = 1
        while True:
            batch = self.list_warehouses(city_ref, page=page, page_size=page_size)
            yield from batch
            if len(batch) < page_size:
                return
            page += 1

    def list_sender_warehouses(self, city_ref: str) -> list[WarehouseRead]:
        """
        Branch-type warehouses in a city (where the store hands over parcels).
        """
        data = self.transport.call(
            "Address",
            "getWarehouses",
            {"CityRef": city_ref, "TypeOfWarehouseRef": self.warehouse_type_ref},
        )
        return [_warehouse(r) for r in data]

    # ----- Reverse lookups -----

    def resolve_city_name(self, city_ref: str) -> str:
        record = self.transport.call_first("Address", "getCities", {"Ref": city_ref})
        return record["Description"]

    def resolve_warehouse_name(self, warehouse_ref: str) -> str:
        record = self.transport.call_first(
            "Address", "getWarehouses", {"Ref": warehouse_ref}
        )
        return record["Description"]

    # ----- Cost -----

    def calculate_shipping_cost(
        self,
        sender_city: str,
        recipient_city: str,
        weight_kg: float,
        declared_value: float,
    ) -> ShippingQuote:
        """
        Quote the carrier's price and delivery date for a warehouse-to-warehouse
        parcel.

        Raises:
            CarrierError: if the carrier rejects the request or the answer
            cannot be read.
        """
        price = self.transport.call_first(
            "InternetDocument",
            "getDocumentPrice",
            {
                "CitySender": sender_city,
                "CityRecipient": recipient_city,
                "Weight": weight_kg,
                "Cost": declared_value,
                "ServiceType": SERVICE_TYPE,
                "CargoType": "Cargo",
                "SeatsAmount": "1",
            },
        )
        try:
            cost = float(price["Cost"])
        except (KeyError, TypeError, ValueError) as exc:
            raise CarrierError("getDocumentPrice returned no cost") from exc

        estimated = price.get("EstimatedDeliveryDate") or ""
        if not estimated:
            delivery = self.transport.call(
                "InternetDocument",
                "getDocumentDeliveryDate",
                {
                    "DateTime": carrier_date(),
                    "ServiceType": SERVICE_TYPE,
                    "CitySender": sender_city,
                    "CityRecipient": recipient_city,
                },
            )
            if delivery:
                estimated = (delivery[0].get("DeliveryDate") or {}).get("date", "")

        return ShippingQuote(cost=cost, estimated_delivery_date=estimated)

    def quote_selection(
        self,
        city_ref: str,
        warehouse_ref: str,
        sender_city: str,
        weight_kg: float,
        declared_value: float,
    ) -> ShippingSelection:
        """
        Build the checkout's shipping selection.

        A failed quote does not block checkout: the selection degrades to a
        zero cost with an unknown delivery date.
        """
        try:
            quote = self.calculate_shipping_cost(
                sender_city, city_ref, weight_kg, declared_value
            )
        except CarrierError as exc:
            logger.warning("Shipping cost unavailable, using 0: %s", exc)
            quote = ShippingQuote(cost=0.0, estimated_delivery_date="")

        return ShippingSelection(
            city=city_ref,
            warehouse=warehouse_ref,
            cost=quote.cost,
            estimated_delivery_date=quote.estimated_delivery_date,
        )


@lru_cache
def get_shipping_directory() -> ShippingDirectoryClient:
    """
    FastAPI dependency / shared instance built from settings.
    """
    settings = get_settings()
    return ShippingDirectoryClient(
        transport=get_transport(),
        warehouse_type_ref=settings.NOVA_POSHTA_WAREHOUSE_TYPE_REF,
    )
