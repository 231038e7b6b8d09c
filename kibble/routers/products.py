# kibble/routers/products.py
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from kibble.core.auth import require_admin
from kibble.database import get_session
from kibble.repositories.product_repo import ProductRepository
from kibble.schemas.product import (
    ProductCreate,
    ProductDetailRead,
    ProductRead,
    ProductUpdate,
)
from kibble.services.product_service import ProductService

router = APIRouter(prefix="/products", tags=["Products"])

repo = ProductRepository()
service = ProductService(repo)


# -------- Public endpoints --------


@router.get("", response_model=list[ProductRead])
def list_products(
    session: Session = Depends(get_session),
    skip: int = 0,
    limit: int = 50,
    only_active: bool = True,
    category: str | None = None,
    life_stage: str | None = None,
):
    """
    List products.

    - Public endpoint.
    - `category`: cat | dog | fish | dry | wet | treats | subscription | all
    - `only_active=True` hides inactive products by default.
    """
    return service.list_products(
        session,
        skip=skip,
        limit=limit,
        only_active=only_active,
        category=category,
        life_stage=life_stage,
    )


@router.get("/{product_id}", response_model=ProductDetailRead)
def get_product(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    """
    Get a single product with its package sizes and prices.
    """
    return service.get_product_detail(session, product_id)


# -------- Admin endpoints --------


@router.post(
    "",
    response_model=ProductRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_product(
    payload: ProductCreate,
    session: Session = Depends(get_session),
):
    """
    Create a new product (admin only).
    """
    return service.create_product(session, payload)


@router.patch(
    "/{product_id}",
    response_model=ProductRead,
    dependencies=[Depends(require_admin)],
)
def update_product(
    product_id: uuid.UUID,
    payload: ProductUpdate,
    session: Session = Depends(get_session),
):
    """
    Update an existing product (admin only).
    """
    return service.update_product(session, product_id, payload)


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def delete_product(
    product_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    service.delete_product(session, product_id)
    return None
