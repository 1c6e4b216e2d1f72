"""
OrderCommitter - turn a confirmed transaction into orders

Flow:
1. Re-run reconciliation on the confirmed items (commit-time check)
2. Reject the whole batch if the buyer sells any of the products
3. On drift, create nothing and hand back the corrected transaction
4. Otherwise commit one order per seller, each in its own transaction:
   conditional stock decrements, sold-out removal, order insert, commit
5. Bring the buyer's cart up to date

Seller groups are independent transactions. When group N fails after
groups 1..N-1 committed, those orders stay and OrderCommitError reports them.
"""
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.exceptions import (
    MarketplaceError,
    OrderCommitError,
    SelfPurchaseError,
    StockConflictError,
)
from marketplace.models import Order, User
from marketplace.services.cart_store import CartStore
from marketplace.services.catalog import CatalogStore
from marketplace.services.order_store import OrderStore
from marketplace.services.projection import cart_display, split_order_products
from marketplace.services.reconciler import update_user_cart, verify_items_to_buy

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def compute_overall_price(lines: Sequence[Mapping[str, Any]]) -> Decimal:
    """Sum of price * quantity, rounded half-up to cents."""
    total = sum((Decimal(line["price"]) * line["quantity"] for line in lines), Decimal("0"))
    return total.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass
class CommitResult:
    """Outcome of a checkout attempt that did not raise."""
    drifted: bool
    orders: List[Order] = field(default_factory=list)
    transaction: List[Dict[str, Any]] = field(default_factory=list)
    # None for single-item checkouts, otherwise the buyer's cart for display
    cart: Optional[List[Dict[str, Any]]] = None


class OrderCommitter:
    """Checkout pipeline for confirmed transactions."""

    async def commit(
        self,
        db: AsyncSession,
        buyer: User,
        items: Sequence[Any],
        delivery_address: Mapping[str, Any],
        clear_cart: bool = False,
        from_cart: bool = True,
    ) -> CommitResult:
        """
        Commit a confirmed transaction.

        Args:
            db: Database session; the committer owns its transaction boundaries
            buyer: Authenticated, active buyer
            items: Confirmed lines with product_id, quantity and optional price
            delivery_address: Copied by value into every order
            clear_cart: Empty the cart afterwards (cart checkouts only)
            from_cart: Whether the items came from the buyer's cart

        Returns:
            CommitResult; drifted=True means nothing was written except the
            corrected cart

        Raises:
            SelfPurchaseError: The buyer sells one of the products
            StockConflictError: Stock moved before the first order committed
            OrderCommitError: A seller group failed after the drift check
        """
        start = time.perf_counter()
        buyer_id = buyer.id

        check = await verify_items_to_buy(db, items, buyer_id)

        if check.is_buying_own_products:
            own = [p["product_id"] for p in check.order_products if p["seller_id"] == buyer_id]
            logger.warning(f"[commit] User {buyer_id} tried to buy own products {own}")
            raise SelfPurchaseError(product_ids=own)

        if check.is_different:
            cart = None
            if from_cart:
                cart = await self._refresh_cart(db, buyer)
            await db.commit()
            logger.warning(
                f"[commit] Drift for user {buyer_id}: returning corrected transaction "
                f"({len(items)} requested, {len(check.transaction)} available)"
            )
            logger.info(
                f"CHECKOUT_METRIC: event=drift buyer={buyer_id} "
                f"duration_ms={(time.perf_counter() - start) * 1000:.1f}"
            )
            return CommitResult(drifted=True, transaction=check.transaction, cart=cart)

        committed_ids: List[int] = []
        for seller_id, lines in split_order_products(check.order_products):
            try:
                for line in lines:
                    await CatalogStore.adjust_quantity(
                        db,
                        line["product_id"],
                        -line["quantity"],
                        expected_minimum=line["quantity"],
                        record_sale=True,
                    )
                    await CatalogStore.delete_if_sold_out(db, line["product_id"])

                order = await OrderStore.create_order(
                    db,
                    seller_id=seller_id,
                    buyer_id=buyer_id,
                    products=lines,
                    overall_price=compute_overall_price(lines),
                    delivery_address=delivery_address,
                )
                await db.commit()
                committed_ids.append(order.id)
                logger.info(
                    f"[commit] Order {order.id} created: buyer={buyer_id} seller={seller_id} "
                    f"lines={len(lines)} total={order.overall_price}"
                )
            except (MarketplaceError, SQLAlchemyError) as e:
                await db.rollback()
                if isinstance(e, StockConflictError) and not committed_ids:
                    raise
                logger.error(
                    f"[commit] Seller group {seller_id} failed for buyer {buyer_id} "
                    f"after orders {committed_ids}: {type(e).__name__}: {e}"
                )
                raise OrderCommitError(
                    "Some orders could not be placed",
                    committed_order_ids=committed_ids,
                    failed_seller_id=seller_id,
                ) from e

        cart = None
        if from_cart:
            if clear_cart:
                await CartStore.clear_cart(db, buyer_id)
                cart = []
            else:
                cart = await self._refresh_cart(db, buyer)
            await db.commit()

        orders = await OrderStore.get_orders(db, committed_ids)
        logger.info(
            f"CHECKOUT_METRIC: event=commit buyer={buyer_id} orders={len(orders)} "
            f"lines={len(check.order_products)} duration_ms={(time.perf_counter() - start) * 1000:.1f}"
        )
        return CommitResult(drifted=False, orders=orders, cart=cart)

    @staticmethod
    async def _refresh_cart(db: AsyncSession, buyer: User) -> List[Dict[str, Any]]:
        reconciled = await update_user_cart(db, buyer)
        return cart_display(reconciled.cart, reconciled.products)


order_committer = OrderCommitter()
