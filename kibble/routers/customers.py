# kibble/routers/customers.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from kibble.core.auth import require_admin, require_auth
from kibble.database import get_session
from kibble.models.customer import Customer
from kibble.repositories.customer_repo import CustomerRepository
from kibble.schemas.customer import CustomerRead, CustomerRoleUpdate, CustomerUpdate
from kibble.services.customer_service import CustomerService

router = APIRouter(prefix="/customers", tags=["Customers"])

repo = CustomerRepository()
service = CustomerService(repo)


# -------- Self profile --------


@router.get("/me", response_model=CustomerRead)
def read_me(current_user: Customer = Depends(require_auth)):
    """
    Return the authenticated customer's profile.

    The profile row is auto-created on the first authenticated request.
    """
    return current_user


@router.patch("/me", response_model=CustomerRead)
def update_me(
    payload: CustomerUpdate,
    session: Session = Depends(get_session),
    current_user: Customer = Depends(require_auth),
):
    """
    Update name and/or phone. Checkout also refreshes both.
    """
    return service.update_me(session, current_user, payload)


# -------- Admin endpoints --------


@router.get(
    "",
    response_model=list[CustomerRead],
    dependencies=[Depends(require_admin)],
)
def list_customers(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
):
    return service.list_customers(session, skip, limit)


@router.get(
    "/{customer_id}",
    response_model=CustomerRead,
    dependencies=[Depends(require_admin)],
)
def get_customer(
    customer_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    return service.get_customer(session, customer_id)


@router.patch(
    "/{customer_id}/role",
    response_model=CustomerRead,
    dependencies=[Depends(require_admin)],
)
def change_role(
    customer_id: uuid.UUID,
    payload: CustomerRoleUpdate,
    session: Session = Depends(get_session),
):
    """
    Update a customer's role (admin only).

    Allowed roles: user, admin.
    """
    return service.update_role(session, customer_id, payload)
