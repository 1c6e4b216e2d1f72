"""
Cart routes

Every read or change starts from a freshly reconciled cart, so quantities
are always clamped to live stock and sold-out items are already gone.
"""
import logging
from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_active_user
from marketplace.core.config import settings
from marketplace.core.database import get_db
from marketplace.core.exceptions import CartLimitError, NotFoundError, PermissionDeniedError, ValidationError
from marketplace.models import Product, User
from marketplace.schemas.cart import CartItemAdd, CartUpdateAction
from marketplace.services.cart_store import CartLine, CartStore
from marketplace.services.catalog import CatalogStore
from marketplace.services.projection import cart_display
from marketplace.services.reconciler import update_user_cart

logger = logging.getLogger(__name__)

router = APIRouter()


async def _save(db: AsyncSession, user: User, lines: List[CartLine], products: Dict[int, Product], is_different: bool):
    items = await CartStore.replace_cart(db, user.id, lines)
    return {"cart": cart_display(items, products), "isDifferent": is_different}


@router.get("")
async def get_cart(
    user: User = Depends(get_active_user),
    db: AsyncSession = Depends(get_db)
):
    reconciled = await update_user_cart(db, user)
    return {
        "cart": cart_display(reconciled.cart, reconciled.products),
        "isDifferent": reconciled.is_different,
    }


@router.patch("/add")
async def add_to_cart(
    item: CartItemAdd,
    user: User = Depends(get_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Add a product, merging with an existing line and clamping to stock."""
    product = await CatalogStore.get_product(db, item.product)
    if product is None:
        raise NotFoundError("This product probably has already been sold")
    if product.seller_id == user.id:
        raise PermissionDeniedError("You can't add your own product to the cart")

    reconciled = await update_user_cart(db, user)
    products = dict(reconciled.products)
    products[product.id] = product
    lines = CartStore.to_lines(reconciled.cart)

    existing = next((line for line in lines if line.product_id == product.id), None)
    if existing is not None:
        existing.quantity = min(existing.quantity + item.quantity, product.quantity)
    else:
        if len(lines) >= settings.MAX_CART_ITEMS:
            raise CartLimitError(f"A cart can hold at most {settings.MAX_CART_ITEMS} items")
        lines.append(CartLine(product_id=product.id, quantity=min(item.quantity, product.quantity)))

    return await _save(db, user, lines, products, reconciled.is_different)


@router.patch("/clear")
async def clear_cart(
    user: User = Depends(get_active_user),
    db: AsyncSession = Depends(get_db)
):
    await CartStore.clear_cart(db, user.id)
    return {"cart": [], "isDifferent": False}


@router.patch("/{item_id}/update")
async def update_cart_item(
    item_id: int,
    action: CartUpdateAction = Query(...),
    quantity: Optional[int] = Query(None),
    user: User = Depends(get_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Change one line's quantity; the result always stays within [1, stock]."""
    reconciled = await update_user_cart(db, user)
    lines = CartStore.to_lines(reconciled.cart)

    line = next((line for line in lines if line.id == item_id), None)
    if line is None:
        raise NotFoundError("Cart item not found")
    stock = reconciled.products[line.product_id].quantity

    if action == CartUpdateAction.INCREMENT:
        line.quantity = min(line.quantity + 1, stock)
    elif action == CartUpdateAction.DECREMENT:
        line.quantity = max(line.quantity - 1, 1)
    else:
        if quantity is None or quantity < 1:
            raise ValidationError("Quantity must be a whole number greater than 0")
        line.quantity = min(quantity, stock)

    return await _save(db, user, lines, reconciled.products, reconciled.is_different)


@router.patch("/{item_id}/remove")
async def remove_cart_item(
    item_id: int,
    user: User = Depends(get_active_user),
    db: AsyncSession = Depends(get_db)
):
    reconciled = await update_user_cart(db, user)
    lines = CartStore.to_lines(reconciled.cart)

    remaining = [line for line in lines if line.id != item_id]
    if len(remaining) == len(lines):
        raise NotFoundError("Cart item not found")

    return await _save(db, user, remaining, reconciled.products, reconciled.is_different)
