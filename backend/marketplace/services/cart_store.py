"""
CartStore - persisted cart rows

Rows keep their id across edits: replace_cart updates rows that survive,
deletes rows that were dropped and inserts new ones.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models import CartItem

logger = logging.getLogger(__name__)


@dataclass
class CartLine:
    product_id: int
    quantity: int
    id: Optional[int] = None


class CartStore:

    @staticmethod
    async def get_cart(db: AsyncSession, user_id: int) -> List[CartItem]:
        result = await db.execute(
            select(CartItem)
            .where(CartItem.user_id == user_id)
            .order_by(CartItem.position, CartItem.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    @staticmethod
    async def replace_cart(db: AsyncSession, user_id: int, lines: Sequence[CartLine]) -> List[CartItem]:
        """Make the persisted cart equal to ``lines``, in that order."""
        existing = {item.id: item for item in await CartStore.get_cart(db, user_id)}
        kept_ids = {line.id for line in lines if line.id is not None}

        for item_id, item in existing.items():
            if item_id not in kept_ids:
                await db.delete(item)

        items = []
        for position, line in enumerate(lines):
            item = existing.get(line.id) if line.id is not None else None
            if item is None:
                item = CartItem(user_id=user_id, product_id=line.product_id)
                db.add(item)
            item.quantity = line.quantity
            item.position = position
            items.append(item)

        await db.flush()
        return items

    @staticmethod
    async def clear_cart(db: AsyncSession, user_id: int) -> None:
        await db.execute(
            delete(CartItem)
            .where(CartItem.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        logger.info(f"[cart] Cleared cart for user {user_id}")

    @staticmethod
    def to_lines(items: Sequence[CartItem]) -> List[CartLine]:
        return [CartLine(product_id=i.product_id, quantity=i.quantity, id=i.id) for i in items]
