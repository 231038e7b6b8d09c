# kibble/repositories/customer_repo.py
import uuid

from sqlmodel import Session, select

from kibble.models.customer import Customer


class CustomerRepository:
    """
    Data access layer for Customer.

    Responsibilities:
      - Pure DB operations (CRUD + queries)
      - No FastAPI, no HTTP, no business logic
    """

    def get_by_id(self, session: Session, customer_id: uuid.UUID) -> Customer | None:
        """Return a Customer by primary key, or None if not found."""
        return session.get(Customer, customer_id)

    def get_by_email(self, session: Session, email: str) -> Customer | None:
        """Return a Customer by unique email, or None if not found."""
        stmt = select(Customer).where(Customer.email == email)
        return session.exec(stmt).first()

    def list(self, session: Session, skip: int = 0, limit: int = 50) -> list[Customer]:
        """
        Paginated customer listing.
        """
        stmt = select(Customer).order_by(Customer.created_at).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def update(self, session: Session, customer: Customer) -> Customer:
        """Persist changes to an existing Customer."""
        session.add(customer)
        session.commit()
        session.refresh(customer)
        return customer
