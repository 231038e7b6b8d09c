# kibble/services/product_service.py
import re
import uuid

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from kibble.core.weights import WEIGHT_CONFIGS, price_for_weight
from kibble.models.product import Product
from kibble.repositories.product_repo import ProductRepository
from kibble.schemas.product import (
    ProductCreate,
    ProductDetailRead,
    ProductUpdate,
    WeightOptionRead,
)

ANIMAL_TYPES = {"cat", "dog", "fish"}
FOOD_CATEGORIES = {"dry", "wet", "treats", "subscription"}


class ProductService:
    """
    Business logic for the catalog.

    Responsibilities:
      - storefront filtering (animal type / food category / life stage)
      - package sizes and their prices
      - slug generation & uniqueness
      - admin-only operations (enforced at router via require_admin)
    """

    def __init__(self, repo: ProductRepository):
        self.repo = repo

    # ----- Helpers -----

    @staticmethod
    def _slugify(raw: str) -> str:
        """
        Basic slugification:
          - lowercase
          - non-alphanumeric -> '-'
          - collapse multiple '-'
          - strip leading/trailing '-'
        """
        value = raw.strip().lower()
        value = re.sub(r"[^a-z0-9]+", "-", value)
        value = re.sub(r"-+", "-", value)
        value = value.strip("-")
        return value or "product"

    def _ensure_unique_slug(self, session: Session, base_slug: str) -> str:
        """
        Ensure slug is unique by appending -2, -3, ... if needed.
        """
        slug = base_slug
        i = 2
        while self.repo.get_by_slug(session, slug) is not None:
            slug = f"{base_slug}-{i}"
            i += 1
        return slug

    @staticmethod
    def _validate_weight_config(key: str) -> str:
        if key not in WEIGHT_CONFIGS:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown weight config: {key}",
            )
        return key

    # ----- Storefront -----

    def list_products(
        self,
        session: Session,
        skip: int = 0,
        limit: int = 50,
        only_active: bool = True,
        category: str | None = None,
        life_stage: str | None = None,
    ) -> list[Product]:
        """
        List products.

        `category` accepts either an animal type (cat | dog | fish) or a food
        category (dry | wet | treats | subscription); "all" or None means no
        filter.
        """
        animal_type = None
        food_category = None
        if category and category != "all":
            if category in ANIMAL_TYPES:
                animal_type = category
            elif category in FOOD_CATEGORIES:
                food_category = category
            else:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Unknown category: {category}",
                )

        return self.repo.list(
            session,
            skip=skip,
            limit=limit,
            only_active=only_active,
            animal_type=animal_type,
            category=food_category,
            life_stage=life_stage,
        )

    def get_product(self, session: Session, product_id: uuid.UUID) -> Product:
        product = self.repo.get_by_id(session, product_id)
        if not product:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Product not found",
            )
        return product

    def get_product_detail(
        self,
        session: Session,
        product_id: uuid.UUID,
    ) -> ProductDetailRead:
        """
        Product with every orderable package size priced.
        """
        product = self.get_product(session, product_id)
        config = WEIGHT_CONFIGS.get(product.weight_config)
        options = [
            WeightOptionRead(
                value=option.value,
                label=option.label,
                price=price_for_weight(product.price, option),
            )
            for option in (config.weights if config else ())
        ]
        return ProductDetailRead(**product.model_dump(), weight_options=options)

    # ----- Admin -----

    def create_product(self, session: Session, payload: ProductCreate) -> Product:
        """
        Create a new product with a unique slug.

        - If slug is provided => slugify & ensure unique.
        - Else => slugify from name & ensure unique.
        """
        raw_slug = payload.slug or payload.name
        slug = self._ensure_unique_slug(session, self._slugify(raw_slug))

        product = Product(
            name=payload.name.strip(),
            slug=slug,
            description=payload.description,
            price=payload.price,
            animal_type=payload.animal_type,
            category=payload.category,
            life_stage=payload.life_stage,
            weight_config=self._validate_weight_config(payload.weight_config),
            image_url=payload.image_url,
            is_active=payload.is_active,
        )
        return self.repo.create(session, product)

    def update_product(
        self,
        session: Session,
        product_id: uuid.UUID,
        payload: ProductUpdate,
    ) -> Product:
        """
        Partial update of a product.

        - If slug is changed, enforce uniqueness.
        """
        product = self.get_product(session, product_id)
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)

        if "slug" in changes:
            new_base_slug = self._slugify(changes.pop("slug"))
            if new_base_slug != product.slug:
                product.slug = self._ensure_unique_slug(session, new_base_slug)

        if "weight_config" in changes:
            self._validate_weight_config(changes["weight_config"])

        for field, value in changes.items():
            setattr(product, field, value)

        return self.repo.update(session, product)

    def delete_product(self, session: Session, product_id: uuid.UUID) -> None:
        """
        Hard delete. Products referenced by order items are kept (409);
        deactivate them instead.
        """
        product = self.get_product(session, product_id)
        try:
            self.repo.delete(session, product)
        except IntegrityError:
            session.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Product has orders; deactivate it instead",
            )
