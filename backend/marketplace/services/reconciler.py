"""
Reconciler - re-validate requested items against the live catalog

Runs twice per checkout: once to preview the transaction and again when the
buyer confirms, because stock and prices may move in between. Reconciliation
never raises for unavailable products; it drops or clamps them and reports
that the result differs from what was asked for.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.exceptions import ValidationError
from marketplace.core.utils import is_valid_id
from marketplace.models import CartItem, Product, User
from marketplace.services.cart_store import CartLine, CartStore
from marketplace.services.catalog import CatalogStore
from marketplace.services.projection import order_product_snapshot, transaction_item

logger = logging.getLogger(__name__)


@dataclass
class RequestedItem:
    product_id: int
    quantity: int
    price: Optional[float] = None


@dataclass
class ReconciliationResult:
    transaction: List[Dict[str, Any]] = field(default_factory=list)
    is_different: bool = False
    is_buying_own_products: bool = False
    # Cart mode only: the persisted cart after reconciliation
    cart: Optional[List[CartItem]] = None
    products: Dict[int, Product] = field(default_factory=dict)
    # Commit mode only: snapshots with seller_id and photo bytes
    order_products: List[Dict[str, Any]] = field(default_factory=list)


def validate_single_item(product: Any, quantity: Any) -> RequestedItem:
    """Reject a malformed ad-hoc item before touching the catalog."""
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
        raise ValidationError("Quantity must be a whole number greater than 0")
    if not is_valid_id(product):
        raise ValidationError("Invalid product id")
    return RequestedItem(product_id=product, quantity=quantity)


async def verify_items_to_transaction(
    db: AsyncSession,
    items: Sequence[Any],
    buyer: User,
    from_cart: bool,
) -> ReconciliationResult:
    """
    Build a transaction preview from cart rows or one requested item.

    Args:
        db: Database session
        items: Objects with product_id and quantity, in display order
        buyer: The requesting user
        from_cart: When True, items are the buyer's cart rows and the
            persisted cart is rewritten with the clamped list

    Returns:
        ReconciliationResult with the verified transaction
    """
    products = await CatalogStore.get_products(db, (item.product_id for item in items))
    result = ReconciliationResult(products=products)
    kept_lines: List[CartLine] = []

    for item in items:
        product = products.get(item.product_id)
        if product is None:
            result.is_different = True
            continue

        quantity = item.quantity
        if product.quantity < quantity:
            quantity = product.quantity
            result.is_different = True

        if product.seller_id == buyer.id:
            result.is_buying_own_products = True

        result.transaction.append(transaction_item(product, quantity))
        if from_cart:
            kept_lines.append(CartLine(product_id=product.id, quantity=quantity, id=item.id))

    if from_cart:
        if result.is_different:
            result.cart = await CartStore.replace_cart(db, buyer.id, kept_lines)
            logger.info(
                f"[reconcile] Cart of user {buyer.id} corrected: "
                f"{len(items)} rows -> {len(kept_lines)} rows"
            )
        else:
            result.cart = list(items)

    return result


async def update_user_cart(db: AsyncSession, user: User) -> ReconciliationResult:
    """Reconcile the user's persisted cart and save the corrected version."""
    cart = await CartStore.get_cart(db, user.id)
    return await verify_items_to_transaction(db, cart, user, from_cart=True)


async def verify_items_to_buy(
    db: AsyncSession,
    items: Sequence[Any],
    buyer_id: int,
) -> ReconciliationResult:
    """
    Commit-time re-check of a confirmed transaction.

    Besides missing products and insufficient stock, a client-asserted price
    that no longer matches the live price counts as drift.
    """
    seen = set()
    for item in items:
        if item.product_id in seen:
            raise ValidationError(
                "Each product may appear only once in a transaction",
                details={"product_id": item.product_id},
            )
        seen.add(item.product_id)

    products = await CatalogStore.get_products(
        db, (item.product_id for item in items), with_photo=True
    )
    result = ReconciliationResult(products=products)

    for item in items:
        product = products.get(item.product_id)
        if product is None:
            result.is_different = True
            continue

        quantity = item.quantity
        if product.quantity < quantity:
            quantity = product.quantity
            result.is_different = True

        asserted_price = getattr(item, "price", None)
        if asserted_price is not None and Decimal(str(asserted_price)) != Decimal(product.price):
            result.is_different = True

        if product.seller_id == buyer_id:
            result.is_buying_own_products = True

        result.transaction.append(transaction_item(product, quantity))
        result.order_products.append(order_product_snapshot(product, quantity))

    return result
