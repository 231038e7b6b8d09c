# kibble/carrier/waybill.py
"""
Counterparty registration and waybill (InternetDocument) creation.

A shipment is created by a strictly sequential chain; each step needs the
previous step's output and any failure aborts the chain:

  1. sender counterparty (the store)
  2. sender contact person
  3. sender dispatch warehouse in the store's home city
  4. recipient counterparty (registered from the checkout form)
  5. recipient contact person, matched by name
  6. cargo weight and description
  7. the waybill itself
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from functools import lru_cache

from kibble.carrier.directory import (
    SERVICE_TYPE,
    ShippingDirectoryClient,
    carrier_date,
    get_shipping_directory,
)
from kibble.carrier.transport import CarrierError, NovaPoshtaTransport, get_transport
from kibble.core.config import get_settings
from kibble.core.weights import format_weight_label
from kibble.schemas.cart import CartLine
from kibble.schemas.shipping import TrackingInfo

logger = logging.getLogger(__name__)

# Carrier rejects parcels lighter than this
MIN_CARGO_WEIGHT_KG = 0.1


@dataclass(frozen=True)
class Recipient:
    first_name: str
    last_name: str
    phone: str
    city_ref: str
    warehouse_ref: str
    middle_name: str | None = None


@dataclass(frozen=True)
class Waybill:
    ref: str
    number: str
    cost: float
    estimated_delivery_date: str


def cargo_weight(items: Sequence[CartLine], packaging_kg: float) -> float:
    """
    Total parcel weight in kg: every unit weighs its package size plus a
    fixed packaging allowance.
    """
    total = sum(
        (item.selected_weight / 1000 + packaging_kg) * item.quantity for item in items
    )
    return max(round(total, 3), MIN_CARGO_WEIGHT_KG)


def cargo_description(items: Sequence[CartLine], max_length: int) -> str:
    """
    Parcel description for the waybill, never longer than `max_length`.

    The full item list is used when it fits; otherwise an item-count summary.
    """
    full = ", ".join(
        f"{item.name} {format_weight_label(item.selected_weight)} x{item.quantity}"
        for item in items
    )
    if len(full) <= max_length:
        return full

    units = sum(item.quantity for item in items)
    summary = f"Pet food: {len(items)} items, {units} pcs"
    return summary[:max_length]


def carrier_phone(phone: str) -> str:
    """Carrier expects digits only, e.g. 380501234567."""
    return "".join(ch for ch in phone if ch.isdigit())


def _same_name(a: str | None, b: str | None) -> bool:
    return (a or "").strip().casefold() == (b or "").strip().casefold()


class WaybillClient:
    """
    Carrier counterparty + waybill operations.
    """

    def __init__(
        self,
        transport: NovaPoshtaTransport,
        directory: ShippingDirectoryClient,
        sender_city_ref: str,
        sender_warehouse_ref: str | None = None,
        packaging_kg: float = 0.1,
        description_max_length: int = 100,
    ):
        self.transport = transport
        self.directory = directory
        self.sender_city_ref = sender_city_ref
        self.sender_warehouse_ref = sender_warehouse_ref
        self.packaging_kg = packaging_kg
        self.description_max_length = description_max_length

    # ----- Sender side -----

    def find_sender(self) -> str:
        """Step 1: ref of the store's registered sender counterparty."""
        record = self.transport.call_first(
            "Counterparty",
            "getCounterparties",
            {"CounterpartyProperty": "Sender", "Page": "1"},
        )
        return record["Ref"]

    def find_contact_person(self, counterparty_ref: str) -> dict:
        """Step 2: first contact person of a counterparty."""
        return self.transport.call_first(
            "Counterparty",
            "getCounterpartyContactPersons",
            {"Ref": counterparty_ref, "Page": "1"},
        )

    def find_sender_warehouse(self) -> str:
        """
        Step 3: dispatch warehouse in the store's home city.

        The configured warehouse is used when the carrier still lists it,
        otherwise the first branch in the city.
        """
        warehouses = self.directory.list_sender_warehouses(self.sender_city_ref)
        if not warehouses:
            raise CarrierError("No sender warehouse in the store's city")
        for warehouse in warehouses:
            if warehouse.ref == self.sender_warehouse_ref:
                return warehouse.ref
        return warehouses[0].ref

    # ----- Recipient side -----

    def register_recipient(self, recipient: Recipient) -> str:
        """Step 4: create a private-person recipient; returns its ref."""
        props = {
            "CounterpartyType": "PrivatePerson",
            "CounterpartyProperty": "Recipient",
            "CityRef": recipient.city_ref,
            "FirstName": recipient.first_name,
            "LastName": recipient.last_name,
            "Phone": carrier_phone(recipient.phone),
        }
        if recipient.middle_name:
            props["MiddleName"] = recipient.middle_name
        record = self.transport.call_first("Counterparty", "save", props)
        return record["Ref"]

    def find_recipient_contact(self, recipient_ref: str, recipient: Recipient) -> str:
        """
        Step 5: the contact person created together with the recipient.

        Registration does not return the contact ref, so the counterparty's
        contacts are searched for one with the same first/last/middle name.
        """
        contacts = self.transport.call(
            "Counterparty",
            "getCounterpartyContactPersons",
            {"Ref": recipient_ref, "Page": "1"},
        )
        for contact in contacts:
            if (
                _same_name(contact.get("FirstName"), recipient.first_name)
                and _same_name(contact.get("LastName"), recipient.last_name)
                and _same_name(contact.get("MiddleName"), recipient.middle_name)
            ):
                return contact["Ref"]
        raise CarrierError("Recipient contact person not found")

    # ----- Waybill -----

    def create_shipment(
        self,
        recipient: Recipient,
        items: Sequence[CartLine],
        declared_value: float,
        payer_type: str,
        payment_method: str,
    ) -> Waybill:
        """
        Run the full sender -> recipient -> waybill chain.

        Raises:
            CarrierError: from whichever step failed; nothing is retried.
        """
        sender_ref = self.find_sender()
        sender_contact = self.find_contact_person(sender_ref)
        sender_warehouse = self.find_sender_warehouse()

        recipient_ref = self.register_recipient(recipient)
        recipient_contact = self.find_recipient_contact(recipient_ref, recipient)

        weight = cargo_weight(items, self.packaging_kg)
        description = cargo_description(items, self.description_max_length)

        logger.info(
            "Creating waybill: %d lines, %.3f kg, payer=%s, payment=%s",
            len(items),
            weight,
            payer_type,
            payment_method,
        )
        record = self.transport.call_first(
            "InternetDocument",
            "save",
            {
                "PayerType": payer_type,
                "PaymentMethod": payment_method,
                "DateTime": carrier_date(),
                "CargoType": "Cargo",
                "Weight": str(weight),
                "ServiceType": SERVICE_TYPE,
                "SeatsAmount": "1",
                "Description": description,
                "Cost": str(declared_value),
                "CitySender": self.sender_city_ref,
                "Sender": sender_ref,
                "SenderAddress": sender_warehouse,
                "ContactSender": sender_contact["Ref"],
                "SendersPhone": carrier_phone(sender_contact.get("Phones", "")),
                "CityRecipient": recipient.city_ref,
                "Recipient": recipient_ref,
                "RecipientAddress": recipient.warehouse_ref,
                "ContactRecipient": recipient_contact,
                "RecipientsPhone": carrier_phone(recipient.phone),
            },
        )
        number = record.get("IntDocNumber")
        if not number:
            raise CarrierError("Waybill created without a number")

        return Waybill(
            ref=record["Ref"],
            number=str(number),
            cost=float(record.get("CostOnSite") or 0),
            estimated_delivery_date=record.get("EstimatedDeliveryDate") or "",
        )

    def delete_waybill(self, waybill_ref: str) -> None:
        """
        Cancel a waybill that has not been handed to the carrier yet.
        """
        self.transport.call(
            "InternetDocument", "delete", {"DocumentRefs": waybill_ref}
        )

    def track_waybill(self, number: str, phone: str | None = None) -> TrackingInfo:
        document = {"DocumentNumber": number}
        if phone:
            document["Phone"] = carrier_phone(phone)
        record = self.transport.call_first(
            "TrackingDocument",
            "getStatusDocuments",
            {"Documents": [document]},
        )
        return TrackingInfo(
            number=number,
            status=record.get("Status", ""),
            warehouse_sender=record.get("WarehouseSender"),
            warehouse_recipient=record.get("WarehouseRecipient"),
            scheduled_delivery_date=record.get("ScheduledDeliveryDate"),
        )


@lru_cache
def get_waybill_client() -> WaybillClient:
    """
    FastAPI dependency / shared instance built from settings.
    """
    settings = get_settings()
    return WaybillClient(
        transport=get_transport(),
        directory=get_shipping_directory(),
        sender_city_ref=settings.NOVA_POSHTA_SENDER_CITY_REF,
        sender_warehouse_ref=settings.NOVA_POSHTA_SENDER_WAREHOUSE_REF,
        packaging_kg=settings.CARGO_PACKAGING_KG,
        description_max_length=settings.CARGO_DESCRIPTION_MAX_LENGTH,
    )
