"""
Order routes

POST re-validates the confirmed transaction and writes one order per seller.
Reads are limited to the two parties of an order.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_active_user, get_current_user
from marketplace.core.config import settings
from marketplace.core.database import get_db
from marketplace.core.exceptions import NotFoundError, PermissionDeniedError
from marketplace.core.rate_limit import limiter
from marketplace.core.utils import parse_sort
from marketplace.models import Order, User
from marketplace.schemas.transaction import OrderCreate
from marketplace.services.order_committer import order_committer
from marketplace.services.order_store import OrderStore, SOLD_ORDERS, SORTABLE_FIELDS
from marketplace.services.projection import order_display

logger = logging.getLogger(__name__)

router = APIRouter()

DETAIL_SELLER_FIELDS = ("username", "email", "phone")


async def _get_party_order(db: AsyncSession, order_id: int, user: User) -> Order:
    order = await OrderStore.get_order(db, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    if not OrderStore.is_party(order, user.id):
        raise PermissionDeniedError("You don't have access to this order")
    return order


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.RATE_LIMIT_CHECKOUT)
async def create_orders(
    request: Request,
    response: Response,
    payload: OrderCreate,
    user: User = Depends(get_active_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Commit a confirmed transaction.

    201 with the created orders, or 200 with the corrected transaction when
    the catalog moved since the preview.

    ``fromCart`` defaults to false: a body without it is a single-item
    checkout, the response ``cart`` is null and ``clearCart`` is ignored.
    Only ``fromCart: true`` reconciles or clears the buyer's cart.
    """
    if payload.delivery_address is not None:
        delivery_address = payload.delivery_address.model_dump(by_alias=True)
    else:
        delivery_address = user.address_snapshot()

    result = await order_committer.commit(
        db,
        user,
        payload.transaction,
        delivery_address,
        clear_cart=payload.clear_cart,
        from_cart=payload.from_cart,
    )

    if result.drifted:
        response.status_code = status.HTTP_200_OK
        return {"transaction": result.transaction, "cart": result.cart}

    return {
        "orders": [order_display(order) for order in result.orders],
        "cart": result.cart,
        "transaction": [],
    }


@router.get("")
async def list_orders(
    order_type: str = Query(SOLD_ORDERS, alias="type"),
    p: int = Query(1, ge=1),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Orders the user placed (type=PLACED_ORDERS) or sold (anything else)."""
    sort_field, descending = parse_sort(sort_by, SORTABLE_FIELDS)
    orders, total = await OrderStore.list_orders(
        db,
        user.id,
        order_type,
        page=p,
        page_size=settings.ORDERS_PAGE_SIZE,
        sort_field=sort_field,
        descending=descending,
    )
    return {"orders": [order_display(order) for order in orders], "orderCount": total}


@router.get("/{order_id}")
async def get_order(
    order_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    order = await _get_party_order(db, order_id, user)
    return order_display(order, seller_fields=DETAIL_SELLER_FIELDS)


@router.get("/{order_id}/{product_id}/photo")
async def get_order_product_photo(
    order_id: int,
    product_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await _get_party_order(db, order_id, user)
    line = await OrderStore.get_order_product(db, order_id, product_id)
    if line is None or line.photo is None:
        raise NotFoundError("Photo not found")
    return Response(content=line.photo, media_type=line.photo_content_type or "application/octet-stream")
