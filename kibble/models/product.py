# kibble/models/product.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Product(SQLModel, table=True):
    """
    Pet food catalog entry.

    `price` is the base price for the smallest package of the product's
    weight config; other package sizes apply a multiplier
    (see kibble.core.weights).
    """

    __tablename__ = "products"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(
        max_length=100,
        min_length=3,
        index=True,
        description="Display name of the product",
    )

    slug: str = Field(
        max_length=255,
        unique=True,
        index=True,
        description="URL-friendly identifier (unique)",
    )

    description: str | None = Field(
        default=None,
        description="Optional long description",
    )

    price: float = Field(
        gt=0,
        description="Base unit price (UAH)",
    )

    # cat | dog | fish
    animal_type: str = Field(
        index=True,
        description="Animal the food is made for",
    )

    # dry | wet | treats | subscription
    category: str = Field(
        index=True,
        description="Food category",
    )

    # kitten | puppy | adult | senior | ...
    life_stage: str | None = Field(
        default=None,
        index=True,
        description="Optional life stage filter",
    )

    weight_config: str = Field(
        description="Key into WEIGHT_CONFIGS, e.g. 'catDry'",
    )

    image_url: str | None = Field(
        default=None,
        description="Main product image URL",
    )

    is_active: bool = Field(
        default=True,
        index=True,
        description="Whether this product is visible on the storefront",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )
