"""
OrderStore - order persistence and lookups

Orders are written once and never updated.
"""
import logging
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload, undefer

from marketplace.models import Order, OrderProduct

logger = logging.getLogger(__name__)

PLACED_ORDERS = "PLACED_ORDERS"
SOLD_ORDERS = "SOLD_ORDERS"

SORTABLE_FIELDS = {
    "createdAt": Order.created_at,
    "overallPrice": Order.overall_price,
}


def _order_query():
    return (
        select(Order)
        .options(
            selectinload(Order.products),
            selectinload(Order.seller),
            selectinload(Order.buyer),
        )
        .execution_options(populate_existing=True)
    )


class OrderStore:

    @staticmethod
    async def create_order(
        db: AsyncSession,
        seller_id: int,
        buyer_id: int,
        products: Sequence[Mapping[str, Any]],
        overall_price: Decimal,
        delivery_address: Mapping[str, Any],
    ) -> Order:
        order = Order(
            seller_id=seller_id,
            buyer_id=buyer_id,
            overall_price=overall_price,
            delivery_address=dict(delivery_address),
            products=[
                OrderProduct(
                    position=position,
                    product_id=line["product_id"],
                    name=line["name"],
                    price=line["price"],
                    quantity=line["quantity"],
                    photo=line.get("photo"),
                    has_photo=line.get("photo") is not None,
                    photo_content_type=line.get("photo_content_type"),
                )
                for position, line in enumerate(products)
            ],
        )
        db.add(order)
        await db.flush()
        return order

    @staticmethod
    async def get_order(db: AsyncSession, order_id: int) -> Optional[Order]:
        result = await db.execute(_order_query().where(Order.id == order_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_orders(db: AsyncSession, order_ids: Sequence[int]) -> List[Order]:
        """Fetch orders keeping the order of ``order_ids``."""
        if not order_ids:
            return []
        result = await db.execute(_order_query().where(Order.id.in_(order_ids)))
        by_id = {o.id: o for o in result.scalars().all()}
        return [by_id[i] for i in order_ids if i in by_id]

    @staticmethod
    async def list_orders(
        db: AsyncSession,
        user_id: int,
        order_type: str,
        page: int,
        page_size: int,
        sort_field: str = "createdAt",
        descending: bool = True,
    ) -> Tuple[List[Order], int]:
        """
        One page of a user's orders.

        PLACED_ORDERS lists orders the user bought; anything else lists
        orders where the user is the seller.
        """
        if order_type == PLACED_ORDERS:
            condition = Order.buyer_id == user_id
        else:
            condition = Order.seller_id == user_id

        column = SORTABLE_FIELDS[sort_field]
        if descending:
            ordering = (column.desc(), Order.id.desc())
        else:
            ordering = (column.asc(), Order.id.asc())

        query = (
            _order_query()
            .where(condition)
            .order_by(*ordering)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await db.execute(query)
        total = (await db.execute(select(func.count(Order.id)).where(condition))).scalar_one()
        return list(result.scalars().all()), total

    @staticmethod
    async def get_order_product(db: AsyncSession, order_id: int, product_id: int) -> Optional[OrderProduct]:
        """Order line with its photo bytes loaded."""
        result = await db.execute(
            select(OrderProduct)
            .options(undefer(OrderProduct.photo))
            .where(OrderProduct.order_id == order_id, OrderProduct.product_id == product_id)
        )
        return result.scalars().first()

    @staticmethod
    def is_party(order: Order, user_id: int) -> bool:
        return user_id in (order.seller_id, order.buyer_id)
