# kibble/routers/auth.py
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlmodel import Session
from supabase import Client

from kibble.core.auth import bearer_scheme, require_auth
from kibble.core.supabase_client import supabase_admin, supabase_public
from kibble.database import get_session
from kibble.models.customer import Customer
from kibble.repositories.customer_repo import CustomerRepository
from kibble.schemas.auth import Credentials, SessionRead
from kibble.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["Auth"])

service = AuthService(CustomerRepository())


def _bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return credentials.credentials


@router.post(
    "/sign-up",
    response_model=SessionRead,
    status_code=status.HTTP_201_CREATED,
)
def sign_up(
    payload: Credentials,
    session: Session = Depends(get_session),
    client: Client = Depends(supabase_public),
):
    """
    Create a Supabase account.

    When e-mail confirmation is enabled the returned session has no tokens
    until the address is confirmed.
    """
    return service.sign_up(session, client, payload)


@router.post("/sign-in", response_model=SessionRead)
def sign_in(
    payload: Credentials,
    session: Session = Depends(get_session),
    client: Client = Depends(supabase_public),
):
    return service.sign_in(session, client, payload)


@router.post("/sign-out", status_code=status.HTTP_204_NO_CONTENT)
def sign_out(
    token: str = Depends(_bearer_token),
    _: Customer = Depends(require_auth),
    admin_client: Client = Depends(supabase_admin),
):
    """
    Revoke the caller's session on every device.
    """
    service.sign_out(admin_client, token)
    return None


@router.get("/session", response_model=SessionRead)
def current_session(
    token: str = Depends(_bearer_token),
    current_user: Customer = Depends(require_auth),
):
    """
    The session behind the bearer token, with the caller's admin flag.
    """
    return service.current_session(current_user, token)
