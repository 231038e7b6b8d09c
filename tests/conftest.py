import json
import os
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

# Settings are read at import time; configure them before importing kibble.
os.environ["SUPABASE_URL"] = "https://kibble-test.supabase.co"
os.environ["SUPABASE_KEY"] = "anon-test-key"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ["NOVA_POSHTA_API_KEY"] = "np-test-key"
os.environ["ADMIN_EMAILS"] = '["admin@example.com"]'

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from jose import jwt  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from kibble.carrier.directory import (  # noqa: E402
    ShippingDirectoryClient,
    get_shipping_directory,
)
from kibble.carrier.transport import NovaPoshtaTransport  # noqa: E402
from kibble.carrier.waybill import WaybillClient, get_waybill_client  # noqa: E402
from kibble.database import get_session  # noqa: E402
from kibble.main import app  # noqa: E402
from kibble.models.product import Product  # noqa: E402
from kibble.services.order_service import order_list_cache  # noqa: E402

JWT_SECRET = "test-jwt-secret"
API = "/api/v1"

CUSTOMER_ID = uuid.UUID("0b8f4a52-4a0e-4d6e-9d36-6b0f2f0a1c01")
CUSTOMER_EMAIL = "buyer@example.com"
ADMIN_ID = uuid.UUID("0b8f4a52-4a0e-4d6e-9d36-6b0f2f0a1c02")
ADMIN_EMAIL = "admin@example.com"

SENDER_CITY_REF = "kyiv-city-ref"
RECIPIENT_CITY_REF = "lviv-city-ref"
RECIPIENT_WAREHOUSE_REF = "lviv-wh-7"
WAYBILL_NUMBER = "20450000000001"


# -------- Fake carrier --------


def ok(*records: dict) -> dict:
    return {"success": True, "data": list(records), "errors": [], "warnings": []}


def fail(*errors: str) -> dict:
    return {"success": False, "data": [], "errors": list(errors), "warnings": []}


Responder = dict | Callable[[dict], dict]


class FakeCarrier:
    """
    Scripted Nova Poshta endpoint for httpx.MockTransport.

    Responses are keyed by "modelName.calledMethod"; each is either a fixed
    envelope or a callable receiving methodProperties. Every request body is
    recorded in `calls`.
    """

    def __init__(self):
        self.calls: list[dict] = []
        self.responders: dict[str, Responder] = {}
        self.registered: dict = {}
        # Fixed contact person instead of echoing the registered recipient
        self.contact_name: dict | None = None
        self.warehouses: list[dict] = [
            {"Ref": f"wh-{n}", "Description": f"Відділення №{n}", "Number": str(n)}
            for n in range(1, 6)
        ]
        self._script_happy_path()

    def on(self, name: str, responder: Responder) -> None:
        self.responders[name] = responder

    def called(self, name: str) -> list[dict]:
        return [
            c["methodProperties"]
            for c in self.calls
            if f"{c['modelName']}.{c['calledMethod']}" == name
        ]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.calls.append(body)
        name = f"{body['modelName']}.{body['calledMethod']}"
        responder = self.responders.get(name)
        if responder is None:
            return httpx.Response(200, json=fail(f"unexpected call {name}"))
        envelope = responder(body["methodProperties"]) if callable(responder) else responder
        return httpx.Response(200, json=envelope)

    # ----- default script -----

    def _cities(self, props: dict) -> dict:
        if "Ref" in props:
            return ok({"Ref": props["Ref"], "Description": "Львів"})
        return ok(
            {"Ref": RECIPIENT_CITY_REF, "Description": "Львів", "AreaDescription": "Львівська"},
            {"Ref": "drohobych-ref", "Description": "Дрогобич", "AreaDescription": "Львівська"},
        )

    def _warehouses(self, props: dict) -> dict:
        if "Ref" in props:
            return ok({"Ref": props["Ref"], "Description": "Відділення №7: вул. Городоцька, 1"})
        if "TypeOfWarehouseRef" in props:
            return ok({"Ref": "sender-wh", "Description": "Відділення №5", "Number": "5"})
        page = int(props["Page"])
        limit = int(props["Limit"])
        start = (page - 1) * limit
        return ok(*self.warehouses[start:start + limit])

    def _register(self, props: dict) -> dict:
        self.registered = props
        return ok({"Ref": "recipient-cp"})

    def _contacts(self, props: dict) -> dict:
        if props["Ref"] == "sender-cp":
            return ok({"Ref": "sender-contact", "Phones": "380501112233"})
        # Carrier creates the contact person from the registered names
        name = self.contact_name or {
            "FirstName": self.registered.get("FirstName", ""),
            "LastName": self.registered.get("LastName", ""),
            "MiddleName": self.registered.get("MiddleName", ""),
        }
        return ok({"Ref": "recipient-contact", **name})

    def _script_happy_path(self) -> None:
        self.on("Address.getAreas", ok({"Ref": "area-lviv", "Description": "Львівська"}))
        self.on("Address.getCities", self._cities)
        self.on("Address.getWarehouses", self._warehouses)
        self.on(
            "InternetDocument.getDocumentPrice",
            ok({"Cost": 70, "EstimatedDeliveryDate": "21.10.2026"}),
        )
        self.on("Counterparty.getCounterparties", ok({"Ref": "sender-cp"}))
        self.on("Counterparty.getCounterpartyContactPersons", self._contacts)
        self.on("Counterparty.save", self._register)
        self.on(
            "InternetDocument.save",
            ok(
                {
                    "Ref": "doc-ref-1",
                    "IntDocNumber": WAYBILL_NUMBER,
                    "CostOnSite": 70,
                    "EstimatedDeliveryDate": "21.10.2026",
                }
            ),
        )
        self.on("InternetDocument.delete", ok({"Ref": "doc-ref-1"}))
        self.on(
            "TrackingDocument.getStatusDocuments",
            ok(
                {
                    "Number": WAYBILL_NUMBER,
                    "Status": "Прибув у відділення",
                    "WarehouseSender": "Відділення №5",
                    "WarehouseRecipient": "Відділення №7",
                    "ScheduledDeliveryDate": "21.10.2026 12:00:00",
                }
            ),
        )


# -------- Auth helpers --------


def make_token(email: str, sub: uuid.UUID | None = None) -> str:
    claims = {
        "sub": str(sub or uuid.uuid4()),
        "email": email,
        "aud": "authenticated",
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
    }
    return jwt.encode(claims, JWT_SECRET, algorithm="HS256")


def bearer(email: str, sub: uuid.UUID | None = None) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(email, sub)}"}


# -------- Fixtures --------


@pytest.fixture(autouse=True)
def _reset_order_cache():
    order_list_cache.invalidate()
    yield


def _enable_foreign_keys(dbapi_connection, _record):
    # SQLite only enforces REFERENCES when asked to, like Postgres always does
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine, "connect", _enable_foreign_keys)
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def carrier() -> FakeCarrier:
    return FakeCarrier()


@pytest.fixture
def transport(carrier):
    transport = NovaPoshtaTransport(
        api_key="np-test-key",
        base_url="https://np.example.com/v2.0/json/",
        http_client=httpx.Client(transport=httpx.MockTransport(carrier)),
    )
    yield transport
    transport.close()


@pytest.fixture
def directory(transport) -> ShippingDirectoryClient:
    return ShippingDirectoryClient(transport, warehouse_type_ref="branch-type")


@pytest.fixture
def waybills(transport, directory) -> WaybillClient:
    return WaybillClient(
        transport,
        directory,
        sender_city_ref=SENDER_CITY_REF,
        sender_warehouse_ref="sender-wh",
    )


@pytest.fixture
def client(session, directory, waybills):
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_shipping_directory] = lambda: directory
    app.dependency_overrides[get_waybill_client] = lambda: waybills
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def customer_headers() -> dict[str, str]:
    return bearer(CUSTOMER_EMAIL, CUSTOMER_ID)


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return bearer(ADMIN_EMAIL, ADMIN_ID)


def make_product(session: Session, **overrides) -> Product:
    values = {
        "name": "Royal Feline Adult",
        "slug": f"royal-feline-adult-{uuid.uuid4().hex[:6]}",
        "price": 10.0,
        "animal_type": "cat",
        "category": "dry",
        "life_stage": "adult",
        "weight_config": "catDry",
        "is_active": True,
    }
    values.update(overrides)
    product = Product(**values)
    session.add(product)
    session.commit()
    session.refresh(product)
    return product


@pytest.fixture
def product(session) -> Product:
    return make_product(session)


def checkout_form(**overrides) -> dict:
    form = {
        "first_name": "Тарас",
        "last_name": "Шевченко",
        "phone": "+380671234567",
        "email": CUSTOMER_EMAIL,
        "city_ref": RECIPIENT_CITY_REF,
        "warehouse_ref": RECIPIENT_WAREHOUSE_REF,
    }
    form.update(overrides)
    return form
