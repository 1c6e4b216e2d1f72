"""
Tests for projection helpers.
"""
from decimal import Decimal

from marketplace.models import Order, OrderProduct, Product, User
from marketplace.services.projection import (
    cart_display,
    order_display,
    product_display,
    split_order_products,
)


def _product(**overrides):
    fields = dict(
        id=7,
        name="Desk",
        description="Oak desk",
        price=Decimal("120.50"),
        quantity=3,
        quantity_sold=1,
        buyer_quantity=1,
        condition="used",
        has_photo=True,
        seller_id=2,
    )
    fields.update(overrides)
    return Product(**fields)


class TestProductDisplay:

    def test_photo_is_reduced_to_flag(self):
        record = product_display(_product(seller=User(id=2, username="anna")))
        assert record["photo"] is True
        assert record["price"] == 120.5

    def test_seller_projected_to_username(self):
        record = product_display(_product(seller=User(id=2, username="anna", email="a@example.com")))
        assert record["seller"] == {"username": "anna"}

    def test_unloaded_seller_falls_back_to_id(self):
        record = product_display(_product())
        assert record["seller"] == 2


class TestSplitOrderProducts:

    def test_groups_by_seller_in_first_seen_order(self):
        snapshots = [
            {"product_id": 1, "seller_id": 20, "quantity": 1},
            {"product_id": 2, "seller_id": 10, "quantity": 2},
            {"product_id": 3, "seller_id": 20, "quantity": 3},
        ]
        groups = split_order_products(snapshots)

        assert [seller for seller, _ in groups] == [20, 10]
        assert [line["product_id"] for line in groups[0][1]] == [1, 3]
        assert all("seller_id" not in line for _, lines in groups for line in lines)

    def test_input_is_not_mutated(self):
        snapshots = [{"product_id": 1, "seller_id": 5}]
        split_order_products(snapshots)
        assert snapshots[0]["seller_id"] == 5

    def test_empty_input(self):
        assert split_order_products([]) == []


class TestOrderDisplay:

    def _order(self, seller=None, buyer=None):
        return Order(
            id=1,
            overall_price=Decimal("30.00"),
            delivery_address={"city": "Oslo"},
            seller=seller,
            buyer=buyer,
            products=[
                OrderProduct(product_id=4, name="Cup", price=Decimal("15.00"), quantity=2, has_photo=False),
            ],
        )

    def test_removed_accounts_resolve_to_none(self):
        record = order_display(self._order())
        assert record["seller"] is None
        assert record["buyer"] is None

    def test_seller_fields_are_selectable(self):
        seller = User(id=3, username="bob", email="bob@example.com", phone="123")
        record = order_display(self._order(seller=seller), seller_fields=("username", "email", "phone"))
        assert record["seller"] == {"username": "bob", "email": "bob@example.com", "phone": "123"}

    def test_products_are_camel_cased(self):
        record = order_display(self._order())
        assert record["products"] == [
            {"productId": 4, "name": "Cup", "price": 15.0, "quantity": 2, "photo": False}
        ]
        assert record["overallPrice"] == 30.0


class TestCartDisplay:

    def test_skips_rows_without_product(self):
        from marketplace.models import CartItem

        items = [
            CartItem(id=1, product_id=7, quantity=2),
            CartItem(id=2, product_id=99, quantity=1),
        ]
        display = cart_display(items, {7: _product(seller=User(id=2, username="anna"))})

        assert len(display) == 1
        assert display[0]["id"] == 1
        assert display[0]["product"]["id"] == 7
