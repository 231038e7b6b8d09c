# kibble/schemas/customer.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

# App-level roles. "guest" = no token, so we don't store it here.
Role = Literal["user", "admin"]


class CustomerRead(SQLModel):
    """Response schema returned to clients."""

    id: uuid.UUID
    email: str
    name: str | None
    phone: str | None
    role: Role
    created_at: datetime
    updated_at: datetime


class CustomerUpdate(SQLModel):
    """
    Partial profile update for authenticated customers.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=20)

    @field_validator("name", "phone")
    @classmethod
    def not_blank(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class CustomerRoleUpdate(SQLModel):
    """
    Admin-only role update schema.
    """

    model_config = ConfigDict(extra="forbid")
    role: Role
