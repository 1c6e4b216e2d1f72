"""
Transaction preview route

Builds the per-line preview the buyer confirms before checkout. Nothing is
reserved here; POST /orders re-checks everything.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_active_user
from marketplace.core.config import settings
from marketplace.core.database import get_db
from marketplace.core.rate_limit import limiter
from marketplace.models import User
from marketplace.schemas.transaction import TransactionPreviewRequest
from marketplace.services.cart_store import CartStore
from marketplace.services.projection import cart_display
from marketplace.services.reconciler import validate_single_item, verify_items_to_transaction

logger = logging.getLogger(__name__)

router = APIRouter()


@router.patch("")
@limiter.limit(settings.RATE_LIMIT_CHECKOUT)
async def preview_transaction(
    request: Request,
    payload: Optional[TransactionPreviewRequest] = Body(None),
    user: User = Depends(get_active_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Reconcile the buyer's cart, or one ad-hoc item, against the catalog.

    In cart mode a corrected cart is saved and returned when anything
    changed; otherwise ``cart`` is null.
    """
    single_item = payload.single_item if payload is not None else None

    if single_item is not None:
        requested = validate_single_item(single_item.product, single_item.quantity)
        result = await verify_items_to_transaction(db, [requested], user, from_cart=False)
        cart = None
    else:
        items = await CartStore.get_cart(db, user.id)
        result = await verify_items_to_transaction(db, items, user, from_cart=True)
        cart = cart_display(result.cart, result.products) if result.is_different else None

    if result.is_different:
        logger.info(f"[transaction] Preview for user {user.id} differs from request")

    return {
        "transaction": result.transaction,
        "cart": cart,
        "isDifferent": result.is_different,
        "isBuyingOwnProducts": result.is_buying_own_products,
    }
