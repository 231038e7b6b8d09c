"""Checkout orchestration: cart -> waybill -> order, and the saved form draft."""

from datetime import datetime, timedelta, timezone

import pytest
from conftest import (
    API,
    CUSTOMER_ID,
    RECIPIENT_CITY_REF,
    WAYBILL_NUMBER,
    checkout_form,
    fail,
    make_product,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from kibble.models.customer import Customer
from kibble.models.order import Order, OrderItem
from kibble.models.state import PersistedState
from kibble.repositories.order_repo import OrderRepository
from kibble.schemas.checkout import CheckoutForm
from kibble.services.checkout_service import checkout_guard, draft_key
from kibble.services.order_service import order_list_cache


def _fill_cart(client, headers, product, quantity=2, weight=400):
    response = client.post(
        f"{API}/cart",
        json={"product_id": str(product.id), "selected_weight": weight, "quantity": quantity},
        headers=headers,
    )
    assert response.status_code == 200, response.text


def _cart(client, headers):
    return client.get(f"{API}/cart", headers=headers).json()


def _orders(session):
    return session.exec(select(Order)).all()


class TestCheckout:
    def test_end_to_end(self, client, session, customer_headers, product, carrier):
        _fill_cart(client, customer_headers, product, quantity=2, weight=400)

        response = client.post(f"{API}/checkout", json=checkout_form(), headers=customer_headers)

        assert response.status_code == 201, response.text
        body = response.json()
        assert body["waybill_number"] == WAYBILL_NUMBER
        assert body["order"]["total_amount"] == 20.0
        assert body["order"]["status"] == "pending"
        assert body["order"]["status_label"] == "Очікує обробки"
        assert body["order"]["shipping_city"] == "Львів"
        assert body["order"]["shipping_address"].startswith("Відділення №7")
        assert body["shipping"]["cost"] == 70.0
        [item] = body["order"]["items"]
        assert item["product_id"] == str(product.id)
        assert item["quantity"] == 2
        assert item["price_at_time"] == 10.0
        assert item["total_price"] == 20.0
        assert item["selected_weight"] == 400

        [order] = _orders(session)
        assert order.waybill_number == WAYBILL_NUMBER
        assert order.waybill_ref == "doc-ref-1"
        assert order.shipping_cost == 70.0
        assert _cart(client, customer_headers)["items"] == []

    def test_order_total_matches_items(self, client, session, customer_headers, product):
        _fill_cart(client, customer_headers, product, quantity=1, weight=400)
        _fill_cart(client, customer_headers, product, quantity=3, weight=1500)

        response = client.post(f"{API}/checkout", json=checkout_form(), headers=customer_headers)

        assert response.status_code == 201
        [order] = _orders(session)
        items = session.exec(select(OrderItem).where(OrderItem.order_id == order.id)).all()
        assert len(items) == 2
        assert order.total_amount == round(sum(i.price_at_time * i.quantity for i in items), 2)
        assert order.total_amount == 46.0

    def test_profile_updated_from_form(self, client, session, customer_headers, product):
        _fill_cart(client, customer_headers, product)

        client.post(f"{API}/checkout", json=checkout_form(), headers=customer_headers)

        customer = session.get(Customer, CUSTOMER_ID)
        session.refresh(customer)
        assert customer.name == "Шевченко Тарас"
        assert customer.phone == "+380671234567"

    def test_empty_cart_rejected_without_carrier_calls(self, client, customer_headers, carrier):
        response = client.post(f"{API}/checkout", json=checkout_form(), headers=customer_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Cart is empty"
        assert carrier.calls == []

    def test_deleted_product_is_dropped_before_carrier(
        self, client, session, customer_headers, admin_headers, product, carrier
    ):
        _fill_cart(client, customer_headers, product)
        deleted = client.delete(f"{API}/products/{product.id}", headers=admin_headers)
        assert deleted.status_code == 204

        response = client.post(f"{API}/checkout", json=checkout_form(), headers=customer_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "No longer available: Royal Feline Adult"
        assert carrier.calls == []
        assert _orders(session) == []
        assert _cart(client, customer_headers)["items"] == []

    def test_deactivated_product_keeps_other_lines(
        self, client, session, customer_headers, admin_headers, product, carrier
    ):
        other = make_product(session, name="Acana Wild Prairie")
        _fill_cart(client, customer_headers, product)
        _fill_cart(client, customer_headers, other, quantity=1)
        client.patch(
            f"{API}/products/{product.id}", json={"is_active": False}, headers=admin_headers
        )

        response = client.post(f"{API}/checkout", json=checkout_form(), headers=customer_headers)

        assert response.status_code == 400
        assert carrier.calls == []
        [line] = _cart(client, customer_headers)["items"]
        assert line["name"] == "Acana Wild Prairie"

        retry = client.post(f"{API}/checkout", json=checkout_form(), headers=customer_headers)

        assert retry.status_code == 201
        assert retry.json()["order"]["total_amount"] == 10.0

    def test_invalid_form_is_422_before_carrier(self, client, customer_headers, product, carrier):
        _fill_cart(client, customer_headers, product)
        carrier.calls.clear()

        response = client.post(
            f"{API}/checkout",
            json=checkout_form(phone="12", first_name="  "),
            headers=customer_headers,
        )

        assert response.status_code == 422
        fields = {tuple(e["loc"][-1:]) for e in response.json()["detail"]}
        assert {("phone",), ("first_name",)} <= fields
        assert carrier.calls == []

    def test_contact_mismatch_aborts_and_keeps_cart(
        self, client, session, customer_headers, product, carrier
    ):
        _fill_cart(client, customer_headers, product)
        carrier.contact_name = {"FirstName": "Іван", "LastName": "Франко", "MiddleName": ""}

        response = client.post(f"{API}/checkout", json=checkout_form(), headers=customer_headers)

        assert response.status_code == 502
        assert response.json()["detail"] == "Order creation failed"
        assert _orders(session) == []
        assert carrier.called("InternetDocument.save") == []
        cart = _cart(client, customer_headers)
        assert cart["total_quantity"] == 2

    def test_shipping_cost_failure_is_not_fatal(
        self, client, session, customer_headers, product, carrier
    ):
        _fill_cart(client, customer_headers, product)
        carrier.on("InternetDocument.getDocumentPrice", fail("Calculation error"))

        response = client.post(f"{API}/checkout", json=checkout_form(), headers=customer_headers)

        assert response.status_code == 201
        assert response.json()["shipping"] == {
            "city": RECIPIENT_CITY_REF,
            "warehouse": "lviv-wh-7",
            "cost": 0.0,
            "estimated_delivery_date": "",
        }
        [order] = _orders(session)
        assert order.shipping_cost == 0.0

    def test_same_waybill_twice_creates_one_order(
        self, client, session, customer_headers, product
    ):
        _fill_cart(client, customer_headers, product)
        first = client.post(f"{API}/checkout", json=checkout_form(), headers=customer_headers)
        assert first.status_code == 201

        _fill_cart(client, customer_headers, product)
        second = client.post(f"{API}/checkout", json=checkout_form(), headers=customer_headers)

        assert second.status_code == 409
        assert second.json()["detail"] == "Order already exists for this waybill"
        assert len(_orders(session)) == 1

    def test_persistence_failure_cancels_waybill(
        self, client, session, customer_headers, product, carrier, monkeypatch
    ):
        _fill_cart(client, customer_headers, product)

        def broken(self, session, items):
            raise SQLAlchemyError("connection lost")

        monkeypatch.setattr(OrderRepository, "create_items", broken)

        response = client.post(f"{API}/checkout", json=checkout_form(), headers=customer_headers)

        assert response.status_code == 500
        assert response.json()["detail"] == "Order creation failed"
        assert carrier.called("InternetDocument.delete") == [{"DocumentRefs": "doc-ref-1"}]
        assert _orders(session) == []
        assert _cart(client, customer_headers)["total_quantity"] == 2

    def test_failed_cancellation_still_reports_500(
        self, client, customer_headers, product, carrier, monkeypatch
    ):
        _fill_cart(client, customer_headers, product)
        carrier.on("InternetDocument.delete", fail("Document already in transit"))

        def broken(self, session, items):
            raise SQLAlchemyError("connection lost")

        monkeypatch.setattr(OrderRepository, "create_items", broken)

        response = client.post(f"{API}/checkout", json=checkout_form(), headers=customer_headers)

        assert response.status_code == 500

    def test_second_checkout_while_one_runs_is_rejected(
        self, client, customer_headers, product, carrier
    ):
        _fill_cart(client, customer_headers, product)

        with checkout_guard.hold(CUSTOMER_ID):
            response = client.post(
                f"{API}/checkout", json=checkout_form(), headers=customer_headers
            )

        assert response.status_code == 409
        assert response.json()["detail"] == "Checkout already in progress"
        assert carrier.called("InternetDocument.save") == []

    def test_checkout_bumps_order_list_version(self, client, customer_headers, product):
        _fill_cart(client, customer_headers, product)
        before = order_list_cache.version

        client.post(f"{API}/checkout", json=checkout_form(), headers=customer_headers)

        assert order_list_cache.version > before

    def test_admin_cannot_checkout(self, client, admin_headers):
        response = client.post(f"{API}/checkout", json=checkout_form(), headers=admin_headers)
        assert response.status_code == 403


class TestShippingQuote:
    def test_quote_for_current_cart(self, client, customer_headers, product, carrier):
        _fill_cart(client, customer_headers, product, quantity=2, weight=400)

        response = client.post(
            f"{API}/shipping/quote",
            json={"city_ref": RECIPIENT_CITY_REF, "warehouse_ref": "lviv-wh-7"},
            headers=customer_headers,
        )

        assert response.status_code == 200
        assert response.json()["cost"] == 70.0
        [props] = carrier.called("InternetDocument.getDocumentPrice")
        assert props["Weight"] == 1.0
        assert props["Cost"] == 20.0

    def test_warehouse_page_reports_has_more(self, client):
        first = client.get(
            f"{API}/shipping/warehouses",
            params={"city_ref": RECIPIENT_CITY_REF, "page": 1, "page_size": 3},
        ).json()
        last = client.get(
            f"{API}/shipping/warehouses",
            params={"city_ref": RECIPIENT_CITY_REF, "page": 2, "page_size": 3},
        ).json()

        assert first["has_more"] is True
        assert len(first["items"]) == 3
        assert last["has_more"] is False
        assert len(last["items"]) == 2

    def test_directory_outage_is_502(self, client, carrier):
        carrier.on("Address.getAreas", fail("Service unavailable"))

        response = client.get(f"{API}/shipping/areas")

        assert response.status_code == 502


class TestCheckoutDraft:
    def test_save_and_load(self, client, customer_headers):
        draft = {"first_name": "Тарас", "city_ref": RECIPIENT_CITY_REF}

        saved = client.put(f"{API}/checkout/draft", json=draft, headers=customer_headers)
        loaded = client.get(f"{API}/checkout/draft", headers=customer_headers)

        assert saved.status_code == 200
        assert loaded.json()["first_name"] == "Тарас"
        assert loaded.json()["city_ref"] == RECIPIENT_CITY_REF

    def test_prefill_from_profile_and_last_order(self, client, customer_headers, product):
        _fill_cart(client, customer_headers, product)
        client.post(
            f"{API}/checkout",
            json=checkout_form(middle_name="Григорович"),
            headers=customer_headers,
        )

        draft = client.get(f"{API}/checkout/draft", headers=customer_headers).json()

        assert draft["first_name"] == "Тарас"
        assert draft["last_name"] == "Шевченко"
        assert draft["middle_name"] == "Григорович"
        assert draft["email"] == "buyer@example.com"
        assert draft["phone"] == "+380671234567"
        assert draft["shipping_city"] == "Львів"

    def test_checkout_clears_draft(self, client, session, customer_headers, product):
        client.put(f"{API}/checkout/draft", json={"first_name": "Т"}, headers=customer_headers)
        _fill_cart(client, customer_headers, product)

        client.post(f"{API}/checkout", json=checkout_form(), headers=customer_headers)

        assert session.get(PersistedState, draft_key(CUSTOMER_ID)) is None

    def test_expired_draft_is_ignored(self, client, session, customer_headers):
        client.put(f"{API}/checkout/draft", json={"first_name": "Старе"}, headers=customer_headers)
        row = session.get(PersistedState, draft_key(CUSTOMER_ID))
        row.expires_at = datetime.now(timezone.utc) - timedelta(minutes=1)
        session.add(row)
        session.commit()

        draft = client.get(f"{API}/checkout/draft", headers=customer_headers).json()

        assert draft["first_name"] is None
        assert session.get(PersistedState, draft_key(CUSTOMER_ID)) is None

    def test_clear(self, client, customer_headers):
        client.put(f"{API}/checkout/draft", json={"first_name": "Т"}, headers=customer_headers)

        response = client.delete(f"{API}/checkout/draft", headers=customer_headers)

        assert response.status_code == 204
        draft = client.get(f"{API}/checkout/draft", headers=customer_headers).json()
        assert draft["first_name"] is None


@pytest.mark.parametrize("phone", ["+380671234567", "0671234567", "380671234567"])
def test_accepted_phone_formats(phone):
    form = CheckoutForm(**checkout_form(phone=phone))
    assert form.phone == phone
