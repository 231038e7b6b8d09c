# kibble/models/state.py
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class PersistedState(SQLModel, table=True):
    """
    Durable key-value mirror for per-customer client state.

    Keys are fixed string identifiers plus the owner id, e.g.
    "cart:<uuid>" or "checkout-form:<uuid>". Values are JSON text.
    """

    __tablename__ = "persisted_state"

    key: str = Field(
        primary_key=True,
        max_length=100,
    )

    value: str = Field(
        description="JSON-encoded snapshot",
    )

    # NULL = never expires
    expires_at: datetime | None = Field(
        default=None,
        description="Best-effort expiry (UTC)",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
