# kibble/schemas/auth.py
import uuid

from pydantic import ConfigDict, EmailStr
from sqlmodel import SQLModel, Field


class Credentials(SQLModel):
    """
    Email + password for sign-up and sign-in.
    """

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=6)


class SessionRead(SQLModel):
    """
    Supabase session handed back to the client.

    access_token is None after sign-up when email confirmation is pending.
    """

    user_id: uuid.UUID
    email: str
    access_token: str | None = None
    refresh_token: str | None = None
    expires_in: int | None = None
    is_admin: bool = False
