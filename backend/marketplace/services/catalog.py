"""
CatalogStore - product lookups and stock adjustment

Stock changes are compare-and-adjust: a single conditional UPDATE that only
matches while the stored quantity still covers the requested amount. Two
buyers racing for the last unit can never both succeed.
"""
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload, undefer

from marketplace.core.exceptions import StockConflictError
from marketplace.models import Product

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "createdAt": Product.created_at,
    "price": Product.price,
    "name": Product.name,
    "quantitySold": Product.quantity_sold,
}


def _product_query(with_photo: bool = False):
    query = (
        select(Product)
        .options(selectinload(Product.seller))
        .execution_options(populate_existing=True)
    )
    if with_photo:
        query = query.options(undefer(Product.photo))
    return query


class CatalogStore:
    """Read and mutate catalog rows inside the caller's session."""

    @staticmethod
    async def get_product(
        db: AsyncSession,
        product_id: int,
        with_photo: bool = False,
    ) -> Optional[Product]:
        """Fetch one product with its seller loaded, or None when it is gone."""
        result = await db.execute(_product_query(with_photo).where(Product.id == product_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_products(
        db: AsyncSession,
        product_ids: Iterable[int],
        with_photo: bool = False,
    ) -> Dict[int, Product]:
        """Batch lookup keyed by id; missing ids are simply absent."""
        ids = list(dict.fromkeys(product_ids))
        if not ids:
            return {}
        result = await db.execute(_product_query(with_photo).where(Product.id.in_(ids)))
        return {p.id: p for p in result.scalars().all()}

    @staticmethod
    async def list_products(
        db: AsyncSession,
        page: int,
        page_size: int,
        sort_field: str = "createdAt",
        descending: bool = True,
        seller_id: Optional[int] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[Product], int]:
        query = _product_query()
        count_query = select(func.count(Product.id))

        if seller_id is not None:
            query = query.where(Product.seller_id == seller_id)
            count_query = count_query.where(Product.seller_id == seller_id)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(Product.name.ilike(pattern))
            count_query = count_query.where(Product.name.ilike(pattern))

        column = SORTABLE_FIELDS[sort_field]
        if descending:
            query = query.order_by(column.desc(), Product.id.desc())
        else:
            query = query.order_by(column.asc(), Product.id.asc())
        query = query.offset((page - 1) * page_size).limit(page_size)

        result = await db.execute(query)
        total = (await db.execute(count_query)).scalar_one()
        return list(result.scalars().all()), total

    @staticmethod
    async def adjust_quantity(
        db: AsyncSession,
        product_id: int,
        delta: int,
        expected_minimum: Optional[int] = None,
        record_sale: bool = False,
    ) -> int:
        """
        Atomically add ``delta`` to a product's stock.

        Args:
            db: Database session
            product_id: Product to adjust
            delta: Signed change in stock (negative for a purchase)
            expected_minimum: Stock the row must still hold for the update to apply
            record_sale: Also add -delta to quantity_sold and count one buyer line

        Returns:
            The stock left after the adjustment

        Raises:
            StockConflictError: The row is gone or holds less than expected_minimum
        """
        values = {"quantity": Product.quantity + delta}
        if record_sale:
            values["quantity_sold"] = Product.quantity_sold - delta
            values["buyer_quantity"] = Product.buyer_quantity + 1

        stmt = update(Product).where(Product.id == product_id)
        if expected_minimum is not None:
            stmt = stmt.where(Product.quantity >= expected_minimum)
        stmt = stmt.values(**values).execution_options(synchronize_session=False)

        result = await db.execute(stmt)
        if result.rowcount == 0:
            logger.warning(
                f"[catalog] Stock conflict on product {product_id}: "
                f"delta={delta} expected_minimum={expected_minimum}"
            )
            raise StockConflictError(
                "Product stock changed while the order was being placed",
                product_id=product_id,
                requested_qty=-delta if delta < 0 else delta,
            )

        remaining = await db.execute(select(Product.quantity).where(Product.id == product_id))
        return remaining.scalar_one()

    @staticmethod
    async def delete_product(db: AsyncSession, product_id: int) -> bool:
        result = await db.execute(
            delete(Product)
            .where(Product.id == product_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    @staticmethod
    async def delete_if_sold_out(db: AsyncSession, product_id: int) -> bool:
        """Remove the product once its stock has reached zero."""
        result = await db.execute(
            delete(Product)
            .where(Product.id == product_id, Product.quantity <= 0)
            .execution_options(synchronize_session=False)
        )
        deleted = result.rowcount > 0
        if deleted:
            logger.info(f"[catalog] Product {product_id} sold out and removed")
        return deleted
