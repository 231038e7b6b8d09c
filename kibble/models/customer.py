# kibble/models/customer.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Customer(SQLModel, table=True):
    """
    Persistent customer profile for the storefront.

    Identity:
      - id: MUST match Supabase auth.users.id (UUID from JWT "sub")

    Role:
      - "user" | "admin"
      - Seeded from settings.ADMIN_EMAILS when the profile is provisioned.
      - "guest" is represented by the absence of a row / missing token.

    This table is *not* responsible for password hashes. Supabase Auth
    stores the password in its own schema. We only mirror identity,
    contact details, and application role.
    """

    __tablename__ = "customers"

    id: uuid.UUID = Field(
        primary_key=True,
        index=True,
        description="Matches Supabase auth.users.id",
    )

    email: str = Field(
        unique=True,
        index=True,
        description="Email from Supabase auth.users",
    )

    name: str | None = Field(
        default=None,
        max_length=100,
        description="Full name; first part of email by default",
    )

    phone: str | None = Field(
        default=None,
        max_length=20,
        description="Last phone number used at checkout",
    )

    # Application role (not Supabase RLS role)
    role: str = Field(
        default="user",
        index=True,
        description="Application role: user | admin",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last profile change (UTC)",
    )
