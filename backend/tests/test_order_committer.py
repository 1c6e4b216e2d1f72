"""
Tests for the checkout committer.
"""
from decimal import Decimal

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.exc import OperationalError

from marketplace.core.exceptions import OrderCommitError, SelfPurchaseError, StockConflictError
from marketplace.models import Order, Product
from marketplace.services import order_committer as committer_module
from marketplace.services.order_committer import OrderCommitter, compute_overall_price
from marketplace.services.order_store import OrderStore
from marketplace.services.reconciler import RequestedItem

from conftest import cart_rows, make_product, put_in_cart, stock_of

ADDRESS = {"firstName": "Ann", "street": "1 Main St", "city": "Oslo"}


async def _order_count(db) -> int:
    return (await db.execute(select(func.count(Order.id)))).scalar_one()


class TestComputeOverallPrice:

    def test_rounds_half_up_to_cents(self):
        lines = [
            {"price": Decimal("0.335"), "quantity": 1},
            {"price": Decimal("1.10"), "quantity": 3},
        ]
        assert compute_overall_price(lines) == Decimal("3.64")


class TestCommit:

    @pytest.fixture
    def committer(self):
        return OrderCommitter()

    @pytest.mark.asyncio
    async def test_one_order_per_seller(self, db, committer, buyer, seller_a, seller_b):
        lamp = await make_product(db, seller_a, "Lamp", price="10.00", quantity=5)
        desk = await make_product(db, seller_b, "Desk", price="100.00", quantity=2)
        chair = await make_product(db, seller_a, "Chair", price="25.50", quantity=4)
        await put_in_cart(db, buyer, (lamp.id, 2), (desk.id, 1), (chair.id, 1))

        result = await committer.commit(
            db,
            buyer,
            [RequestedItem(lamp.id, 2), RequestedItem(desk.id, 1), RequestedItem(chair.id, 1)],
            ADDRESS,
        )

        assert result.drifted is False
        assert [order.seller_id for order in result.orders] == [seller_a.id, seller_b.id]
        assert [order.overall_price for order in result.orders] == [Decimal("45.50"), Decimal("100.00")]
        assert [line.product_id for line in result.orders[0].products] == [lamp.id, chair.id]
        assert result.orders[0].delivery_address == ADDRESS
        assert await stock_of(db, lamp.id) == 3
        assert await stock_of(db, desk.id) == 1

    @pytest.mark.asyncio
    async def test_sale_is_recorded_on_product(self, db, committer, buyer, seller_a):
        lamp = await make_product(db, seller_a, "Lamp", quantity=5)

        await committer.commit(db, buyer, [RequestedItem(lamp.id, 3)], ADDRESS, from_cart=False)

        row = (await db.execute(
            select(Product.quantity_sold, Product.buyer_quantity).where(Product.id == lamp.id)
        )).one()
        assert tuple(row) == (3, 1)

    @pytest.mark.asyncio
    async def test_delivery_address_is_copied(self, db, committer, buyer, seller_a):
        lamp = await make_product(db, seller_a, "Lamp", quantity=5)
        address = dict(ADDRESS)

        result = await committer.commit(db, buyer, [RequestedItem(lamp.id, 1)], address, from_cart=False)
        address["city"] = "Bergen"

        assert result.orders[0].delivery_address["city"] == "Oslo"

    @pytest.mark.asyncio
    async def test_drift_creates_nothing(self, db, committer, buyer, seller_a, seller_b):
        lamp = await make_product(db, seller_a, "Lamp", quantity=5)
        desk = await make_product(db, seller_b, "Desk", quantity=1)
        await put_in_cart(db, buyer, (lamp.id, 1), (desk.id, 1))

        result = await committer.commit(
            db, buyer, [RequestedItem(lamp.id, 1), RequestedItem(desk.id, 3)], ADDRESS
        )

        assert result.drifted is True
        assert [item["quantity"] for item in result.transaction] == [1, 1]
        assert await _order_count(db) == 0
        assert await stock_of(db, lamp.id) == 5
        assert await stock_of(db, desk.id) == 1

    @pytest.mark.asyncio
    async def test_drift_refreshes_cart(self, db, committer, buyer, seller_a):
        lamp = await make_product(db, seller_a, "Lamp", quantity=1)
        await put_in_cart(db, buyer, (lamp.id, 4))

        result = await committer.commit(db, buyer, [RequestedItem(lamp.id, 4)], ADDRESS)

        assert result.drifted is True
        assert [item["quantity"] for item in result.cart] == [1]
        assert await cart_rows(db, buyer.id) == [(lamp.id, 1)]

    @pytest.mark.asyncio
    async def test_self_purchase_is_rejected(self, db, committer, buyer, seller_a):
        lamp = await make_product(db, seller_a, "Lamp", quantity=5)
        own = await make_product(db, buyer, "Own", quantity=5)

        with pytest.raises(SelfPurchaseError) as exc_info:
            await committer.commit(
                db, buyer, [RequestedItem(lamp.id, 1), RequestedItem(own.id, 1)], ADDRESS
            )

        assert exc_info.value.details["product_ids"] == [own.id]
        assert await _order_count(db) == 0
        assert await stock_of(db, lamp.id) == 5

    @pytest.mark.asyncio
    async def test_clear_cart(self, db, committer, buyer, seller_a):
        lamp = await make_product(db, seller_a, "Lamp", quantity=5)
        chair = await make_product(db, seller_a, "Chair", quantity=5)
        await put_in_cart(db, buyer, (lamp.id, 1), (chair.id, 1))

        result = await committer.commit(
            db, buyer, [RequestedItem(lamp.id, 1)], ADDRESS, clear_cart=True
        )

        assert result.cart == []
        assert await cart_rows(db, buyer.id) == []

    @pytest.mark.asyncio
    async def test_cart_is_reconciled_after_commit(self, db, committer, buyer, seller_a):
        lamp = await make_product(db, seller_a, "Lamp", quantity=3)
        await put_in_cart(db, buyer, (lamp.id, 3))

        result = await committer.commit(db, buyer, [RequestedItem(lamp.id, 2)], ADDRESS)

        assert [item["quantity"] for item in result.cart] == [1]
        assert await cart_rows(db, buyer.id) == [(lamp.id, 1)]

    @pytest.mark.asyncio
    async def test_single_item_commit_has_no_cart(self, db, committer, buyer, seller_a):
        lamp = await make_product(db, seller_a, "Lamp", quantity=3)
        await put_in_cart(db, buyer, (lamp.id, 3))

        result = await committer.commit(
            db, buyer, [RequestedItem(lamp.id, 1)], ADDRESS, clear_cart=True, from_cart=False
        )

        assert result.cart is None
        assert await cart_rows(db, buyer.id) == [(lamp.id, 3)]

    @pytest.mark.asyncio
    async def test_reduced_stock_example(self, db, committer, buyer, seller_a):
        lamp = await make_product(db, seller_a, "Lamp", quantity=50)
        lamp_id = lamp.id
        await put_in_cart(db, buyer, (lamp_id, 2))
        await db.execute(update(Product).where(Product.id == lamp_id).values(quantity=1))
        await db.commit()

        drifted = await committer.commit(db, buyer, [RequestedItem(lamp_id, 2)], ADDRESS)
        assert drifted.drifted is True
        assert drifted.transaction[0]["quantity"] == 1

        placed = await committer.commit(db, buyer, [RequestedItem(lamp_id, 1)], ADDRESS)
        assert placed.drifted is False
        assert len(placed.orders) == 1
        assert await stock_of(db, lamp_id) is None
        assert placed.cart == []


class TestCommitFailures:

    @pytest.mark.asyncio
    async def test_conflict_before_any_order_is_a_stock_conflict(self, db, buyer, seller_a, monkeypatch):
        lamp = await make_product(db, seller_a, "Lamp", quantity=2)
        lamp_id = lamp.id
        real_verify = committer_module.verify_items_to_buy

        async def verify_then_race(session, items, buyer_id):
            result = await real_verify(session, items, buyer_id)
            # Another buyer takes the stock between the check and the decrement
            await session.execute(update(Product).where(Product.id == lamp_id).values(quantity=1))
            return result

        monkeypatch.setattr(committer_module, "verify_items_to_buy", verify_then_race)

        with pytest.raises(StockConflictError):
            await OrderCommitter().commit(db, buyer, [RequestedItem(lamp_id, 2)], ADDRESS, from_cart=False)

        assert await _order_count(db) == 0

    @pytest.mark.asyncio
    async def test_failure_in_later_group_keeps_earlier_orders(self, db, buyer, seller_a, seller_b, monkeypatch):
        lamp = await make_product(db, seller_a, "Lamp", quantity=5)
        desk = await make_product(db, seller_b, "Desk", quantity=5)
        lamp_id, desk_id, seller_b_id = lamp.id, desk.id, seller_b.id
        real_create = OrderStore.create_order

        async def failing_create(session, seller_id, **kwargs):
            if seller_id == seller_b_id:
                raise OperationalError("INSERT INTO orders", {}, Exception("disk I/O error"))
            return await real_create(session, seller_id=seller_id, **kwargs)

        monkeypatch.setattr(OrderStore, "create_order", staticmethod(failing_create))

        with pytest.raises(OrderCommitError) as exc_info:
            await OrderCommitter().commit(
                db, buyer, [RequestedItem(lamp_id, 1), RequestedItem(desk_id, 1)], ADDRESS, from_cart=False
            )

        error = exc_info.value
        assert error.is_partial is True
        assert error.details["failed_seller_id"] == seller_b_id
        assert len(error.details["committed_order_ids"]) == 1
        assert await _order_count(db) == 1
        assert await stock_of(db, lamp_id) == 4
        assert await stock_of(db, desk_id) == 5
