# kibble/services/auth_service.py
import logging
import uuid

from fastapi import HTTPException, status
from sqlmodel import Session
from supabase import AuthError, Client

from kibble.core.auth import role_for_email
from kibble.models.customer import Customer
from kibble.repositories.customer_repo import CustomerRepository
from kibble.schemas.auth import Credentials, SessionRead

logger = logging.getLogger(__name__)


def _to_session(response, role: str) -> SessionRead:
    """
    Map a Supabase AuthResponse to our SessionRead.
    """
    user = response.user
    session = response.session
    return SessionRead(
        user_id=user.id,
        email=user.email,
        access_token=session.access_token if session else None,
        refresh_token=session.refresh_token if session else None,
        expires_in=session.expires_in if session else None,
        is_admin=role == "admin",
    )


class AuthService:
    """
    Thin proxy over Supabase Auth (email + password).

    Tokens issued here are the same JWTs verified by kibble.core.auth on
    every other request. The admin flag comes from the stored profile role;
    accounts without a profile yet get the role they will be provisioned with.
    """

    def __init__(self, customer_repo: CustomerRepository):
        self.customer_repo = customer_repo

    def _role(self, session: Session, user) -> str:
        customer = self.customer_repo.get_by_id(session, uuid.UUID(str(user.id)))
        if customer is None:
            return role_for_email(user.email)
        return customer.role

    def sign_up(
        self,
        session: Session,
        client: Client,
        payload: Credentials,
    ) -> SessionRead:
        try:
            response = client.auth.sign_up(
                {"email": str(payload.email), "password": payload.password}
            )
        except AuthError as exc:
            logger.warning("Sign-up for %s rejected: %s", payload.email, exc)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Could not create account",
            )
        if response.user is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Could not create account",
            )
        return _to_session(response, self._role(session, response.user))

    def sign_in(
        self,
        session: Session,
        client: Client,
        payload: Credentials,
    ) -> SessionRead:
        try:
            response = client.auth.sign_in_with_password(
                {"email": str(payload.email), "password": payload.password}
            )
        except AuthError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password",
            )
        if response.user is None or response.session is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password",
            )
        return _to_session(response, self._role(session, response.user))

    def sign_out(self, admin_client: Client, access_token: str) -> None:
        """
        Revoke the refresh tokens behind `access_token` (all devices).
        """
        try:
            admin_client.auth.admin.sign_out(access_token)
        except AuthError as exc:
            logger.warning("Sign-out failed: %s", exc)
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Sign-out failed",
            )

    def current_session(self, customer: Customer, access_token: str) -> SessionRead:
        return SessionRead(
            user_id=customer.id,
            email=customer.email,
            access_token=access_token,
            is_admin=customer.role == "admin",
        )
