"""
Product routes

Sellers manage their own listings. Photos are stored exactly as uploaded.
"""
import logging
from decimal import Decimal
from typing import Optional
from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_active_user
from marketplace.core.config import settings
from marketplace.core.database import get_db
from marketplace.core.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from marketplace.core.utils import parse_sort
from marketplace.models import Product, User
from marketplace.schemas.product import ProductCreate, ProductUpdate
from marketplace.services.catalog import CatalogStore, SORTABLE_FIELDS
from marketplace.services.projection import product_display

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOWED_PHOTO_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}


async def _get_owned_product(db: AsyncSession, product_id: int, user: User, allow_admin: bool = False) -> Product:
    product = await CatalogStore.get_product(db, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    if allow_admin and user.is_admin:
        return product
    if product.seller_id != user.id:
        raise PermissionDeniedError("You can only modify your own products")
    return product


@router.get("")
async def list_products(
    p: int = Query(1, ge=1),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    search: Optional[str] = Query(None, max_length=100),
    seller: Optional[int] = Query(None, gt=0),
    db: AsyncSession = Depends(get_db)
):
    sort_field, descending = parse_sort(sort_by, SORTABLE_FIELDS)
    products, total = await CatalogStore.list_products(
        db,
        page=p,
        page_size=settings.PRODUCTS_PAGE_SIZE,
        sort_field=sort_field,
        descending=descending,
        seller_id=seller,
        search=search,
    )
    return {
        "products": [product_display(product) for product in products],
        "productCount": total,
    }


@router.get("/{product_id}")
async def get_product(product_id: int, db: AsyncSession = Depends(get_db)):
    product = await CatalogStore.get_product(db, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product_display(product)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_product(
    product_data: ProductCreate,
    user: User = Depends(get_active_user),
    db: AsyncSession = Depends(get_db)
):
    product = Product(
        name=product_data.name,
        description=product_data.description,
        price=Decimal(str(product_data.price)),
        quantity=product_data.quantity,
        condition=product_data.condition.value,
        seller_id=user.id,
    )
    db.add(product)
    await db.commit()
    logger.info(f"[products] User {user.id} listed product {product.id}")

    return product_display(await CatalogStore.get_product(db, product.id))


@router.patch("/{product_id}")
async def update_product(
    product_id: int,
    product_data: ProductUpdate,
    user: User = Depends(get_active_user),
    db: AsyncSession = Depends(get_db)
):
    product = await _get_owned_product(db, product_id, user)

    changes = product_data.model_dump(exclude_unset=True, exclude_none=True)
    if "price" in changes:
        changes["price"] = Decimal(str(changes["price"]))
    if "condition" in changes:
        changes["condition"] = changes["condition"].value
    for field, value in changes.items():
        setattr(product, field, value)

    await db.commit()
    return product_display(await CatalogStore.get_product(db, product_id))


@router.delete("/{product_id}")
async def delete_product(
    product_id: int,
    user: User = Depends(get_active_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Remove a listing. Admins may remove any listing.

    Carts keep the dangling reference until their next reconciliation.
    """
    await _get_owned_product(db, product_id, user, allow_admin=True)
    await CatalogStore.delete_product(db, product_id)
    await db.commit()
    logger.info(f"[products] User {user.id} deleted product {product_id}")
    return {"message": "Product deleted"}


@router.post("/{product_id}/photo")
async def upload_photo(
    product_id: int,
    photo: UploadFile = File(...),
    user: User = Depends(get_active_user),
    db: AsyncSession = Depends(get_db)
):
    product = await _get_owned_product(db, product_id, user)

    if photo.content_type not in ALLOWED_PHOTO_TYPES:
        raise ValidationError("Photo must be a JPEG, PNG, WEBP or GIF image")
    data = await photo.read()
    if not data:
        raise ValidationError("Photo is empty")
    if len(data) > settings.MAX_PHOTO_BYTES:
        raise ValidationError(f"Photo must be at most {settings.MAX_PHOTO_BYTES} bytes")

    product.photo = data
    product.has_photo = True
    product.photo_content_type = photo.content_type
    await db.commit()
    return product_display(await CatalogStore.get_product(db, product_id))


@router.get("/{product_id}/photo")
async def get_photo(product_id: int, db: AsyncSession = Depends(get_db)):
    product = await CatalogStore.get_product(db, product_id, with_photo=True)
    if product is None or product.photo is None:
        raise NotFoundError("Photo not found")
    return Response(content=product.photo, media_type=product.photo_content_type or "application/octet-stream")
