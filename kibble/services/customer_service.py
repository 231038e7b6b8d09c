# kibble/services/customer_service.py
import uuid
from datetime import datetime, timezone

from fastapi import HTTPException, status
from sqlmodel import Session

from kibble.models.customer import Customer
from kibble.repositories.customer_repo import CustomerRepository
from kibble.schemas.customer import CustomerRoleUpdate, CustomerUpdate


class CustomerService:
    """
    Business logic for customer profiles.

    Responsibilities:
      - profile edits (email is owned by Supabase Auth and never changes here)
      - admin listing and role changes
      - map domain errors to HTTP errors
    """

    def __init__(self, repo: CustomerRepository):
        self.repo = repo

    # ----- Self profile -----

    def update_me(
        self,
        session: Session,
        current_user: Customer,
        payload: CustomerUpdate,
    ) -> Customer:
        """
        Partial update; only provided fields change.
        """
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        for field, value in changes.items():
            setattr(current_user, field, value)
        current_user.updated_at = datetime.now(timezone.utc)
        return self.repo.update(session, current_user)

    # ----- Admin operations -----

    def list_customers(self, session: Session, skip: int, limit: int) -> list[Customer]:
        return self.repo.list(session, skip=skip, limit=limit)

    def get_customer(self, session: Session, customer_id: uuid.UUID) -> Customer:
        """
        Raises:
            HTTPException(404): if not found.
        """
        customer = self.repo.get_by_id(session, customer_id)
        if not customer:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Customer not found",
            )
        return customer

    def update_role(
        self,
        session: Session,
        customer_id: uuid.UUID,
        payload: CustomerRoleUpdate,
    ) -> Customer:
        customer = self.get_customer(session, customer_id)
        customer.role = payload.role
        customer.updated_at = datetime.now(timezone.utc)
        return self.repo.update(session, customer)
