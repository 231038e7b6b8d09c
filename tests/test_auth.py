"""Token verification, role provisioning and the Supabase Auth proxy."""

import uuid
from types import SimpleNamespace

import pytest
from conftest import ADMIN_EMAIL, API, CUSTOMER_EMAIL, CUSTOMER_ID, bearer
from jose import jwt
from supabase import AuthApiError

from kibble.core.auth import role_for_email
from kibble.core.supabase_client import supabase_admin, supabase_public
from kibble.main import app
from kibble.models.customer import Customer


class FakeAuth:
    """Stands in for supabase Client.auth."""

    def __init__(self, reject: bool = False):
        self.reject = reject
        self.user_id: uuid.UUID | None = None
        self.signed_out: list[str] = []
        self.admin = SimpleNamespace(sign_out=self.signed_out.append)

    def _response(self, credentials):
        user = SimpleNamespace(
            id=str(self.user_id or uuid.uuid4()), email=credentials["email"]
        )
        session = SimpleNamespace(
            access_token="access", refresh_token="refresh", expires_in=3600
        )
        return SimpleNamespace(user=user, session=session)

    def sign_up(self, credentials):
        return self._response(credentials)

    def sign_in_with_password(self, credentials):
        if self.reject:
            raise AuthApiError("Invalid login credentials", 400, None)
        return self._response(credentials)


@pytest.fixture
def auth():
    fake = FakeAuth()
    client = SimpleNamespace(auth=fake)
    app.dependency_overrides[supabase_public] = lambda: client
    app.dependency_overrides[supabase_admin] = lambda: client
    yield fake


class TestTokens:
    def test_first_request_provisions_customer(self, client, session, customer_headers):
        response = client.get(f"{API}/customers/me", headers=customer_headers)

        assert response.status_code == 200
        assert response.json()["role"] == "user"
        assert response.json()["name"] == "buyer"
        assert session.get(Customer, CUSTOMER_ID).email == CUSTOMER_EMAIL

    def test_configured_email_is_admin(self, client, admin_headers):
        response = client.get(f"{API}/customers/me", headers=admin_headers)

        assert response.json()["role"] == "admin"

    def test_role_for_email_is_case_insensitive(self):
        assert role_for_email(" Admin@Example.com ") == "admin"
        assert role_for_email("buyer@example.com") == "user"

    def test_bad_signature_is_401(self, client):
        token = jwt.encode(
            {"sub": str(uuid.uuid4()), "email": CUSTOMER_EMAIL}, "wrong-secret", algorithm="HS256"
        )

        response = client.get(
            f"{API}/customers/me", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 401

    def test_missing_token_is_401(self, client):
        assert client.get(f"{API}/customers/me").status_code == 401


class TestProfile:
    def test_update_me(self, client, customer_headers):
        response = client.patch(
            f"{API}/customers/me",
            json={"name": "Шевченко Тарас", "phone": "+380671234567"},
            headers=customer_headers,
        )

        assert response.status_code == 200
        assert response.json()["phone"] == "+380671234567"

    def test_admin_changes_role(self, client, customer_headers, admin_headers):
        client.get(f"{API}/customers/me", headers=customer_headers)

        response = client.patch(
            f"{API}/customers/{CUSTOMER_ID}/role",
            json={"role": "admin"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["role"] == "admin"

    def test_customer_cannot_list_customers(self, client, customer_headers):
        assert client.get(f"{API}/customers", headers=customer_headers).status_code == 403


class TestAuthEndpoints:
    def test_sign_up(self, client, auth):
        response = client.post(
            f"{API}/auth/sign-up",
            json={"email": ADMIN_EMAIL, "password": "secret123"},
        )

        assert response.status_code == 201
        assert response.json()["is_admin"] is True
        assert response.json()["access_token"] == "access"

    def test_sign_in(self, client, auth):
        response = client.post(
            f"{API}/auth/sign-in",
            json={"email": CUSTOMER_EMAIL, "password": "secret123"},
        )

        assert response.status_code == 200
        assert response.json()["is_admin"] is False
        assert response.json()["refresh_token"] == "refresh"

    def test_sign_in_rejected(self, client, auth):
        auth.reject = True

        response = client.post(
            f"{API}/auth/sign-in",
            json={"email": CUSTOMER_EMAIL, "password": "secret123"},
        )

        assert response.status_code == 401

    def test_short_password_is_422(self, client, auth):
        response = client.post(
            f"{API}/auth/sign-up",
            json={"email": CUSTOMER_EMAIL, "password": "123"},
        )
        assert response.status_code == 422

    def test_session_and_sign_out(self, client, auth):
        headers = bearer(CUSTOMER_EMAIL, CUSTOMER_ID)
        token = headers["Authorization"].removeprefix("Bearer ")

        session = client.get(f"{API}/auth/session", headers=headers)
        signed_out = client.post(f"{API}/auth/sign-out", headers=headers)

        assert session.json()["user_id"] == str(CUSTOMER_ID)
        assert session.json()["access_token"] == token
        assert signed_out.status_code == 204
        assert auth.signed_out == [token]

    def test_sign_in_reports_stored_role(self, client, auth, customer_headers, admin_headers):
        client.get(f"{API}/customers/me", headers=customer_headers)
        client.patch(
            f"{API}/customers/{CUSTOMER_ID}/role",
            json={"role": "admin"},
            headers=admin_headers,
        )
        auth.user_id = CUSTOMER_ID

        response = client.post(
            f"{API}/auth/sign-in",
            json={"email": CUSTOMER_EMAIL, "password": "secret123"},
        )

        assert response.json()["is_admin"] is True
