# kibble/schemas/product.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel, Field

AnimalType = Literal["cat", "dog", "fish"]
FoodCategory = Literal["dry", "wet", "treats", "subscription"]


class WeightOptionRead(SQLModel):
    """
    One orderable package size with its price.
    """

    value: int
    label: str
    price: float


class ProductRead(SQLModel):
    """
    Product representation for clients.
    """

    id: uuid.UUID
    name: str
    slug: str
    description: str | None = None
    price: float
    animal_type: AnimalType
    category: FoodCategory
    life_stage: str | None = None
    weight_config: str
    image_url: str | None = None
    is_active: bool
    created_at: datetime


class ProductDetailRead(ProductRead):
    """
    Product with its package sizes and per-size prices.
    """

    weight_options: list[WeightOptionRead]


class ProductCreate(SQLModel):
    """
    Payload for creating a product.

    - slug is optional: if omitted, generated from `name`.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(max_length=100)
    slug: str | None = None
    description: str | None = None
    price: float = Field(gt=0)
    animal_type: AnimalType
    category: FoodCategory
    life_stage: str | None = None
    weight_config: str
    image_url: str | None = None
    is_active: bool = True

    @field_validator("name", "weight_config")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("slug")
    @classmethod
    def normalize_slug(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("slug cannot be empty if provided")
        return v


class ProductUpdate(SQLModel):
    """
    Partial update payload for products.
    All fields are optional.
    """

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=100)
    slug: str | None = None
    description: str | None = None
    price: float | None = Field(default=None, gt=0)
    animal_type: AnimalType | None = None
    category: FoodCategory | None = None
    life_stage: str | None = None
    weight_config: str | None = None
    image_url: str | None = None
    is_active: bool | None = None

    @field_validator("name", "slug", "weight_config")
    @classmethod
    def not_empty(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v
