"""
Projection helpers - ORM rows to API records

Photos are never serialized inline, only their presence. Related accounts are
reduced to a few public fields, and an account that no longer exists
projects as None.
"""
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import inspect

from marketplace.models import CartItem, Order, Product, User


def _money(value) -> Optional[float]:
    if value is None:
        return None
    return float(value)


def _is_loaded(obj, attribute: str) -> bool:
    return attribute not in inspect(obj).unloaded


def user_display(user: Optional[User], fields: Sequence[str] = ("username",)) -> Optional[Dict[str, Any]]:
    """Public projection of an account, or None when it has been removed."""
    if user is None:
        return None
    return {field: getattr(user, field) for field in fields}


def product_display(product: Product, with_seller: bool = True) -> Dict[str, Any]:
    record = {
        "id": product.id,
        "name": product.name,
        "description": product.description,
        "price": _money(product.price),
        "quantity": product.quantity,
        "quantitySold": product.quantity_sold,
        "buyerQuantity": product.buyer_quantity,
        "condition": product.condition,
        "photo": bool(product.has_photo),
        "createdAt": product.created_at,
        "updatedAt": product.updated_at,
    }
    if with_seller and _is_loaded(product, "seller"):
        record["seller"] = user_display(product.seller)
    else:
        record["seller"] = product.seller_id
    return record


def transaction_item(product: Product, quantity: int) -> Dict[str, Any]:
    """One line of a transaction preview."""
    return {
        "productId": product.id,
        "name": product.name,
        "price": _money(product.price),
        "quantity": quantity,
        "photo": bool(product.has_photo),
        "seller": user_display(product.seller),
    }


def order_product_snapshot(product: Product, quantity: int) -> Dict[str, Any]:
    """
    Frozen copy of a product for an order line.

    seller_id is kept so lines can be split by seller; split_order_products
    strips it before the snapshot is stored.
    """
    return {
        "product_id": product.id,
        "name": product.name,
        "price": Decimal(product.price),
        "quantity": quantity,
        "photo": product.photo,
        "photo_content_type": product.photo_content_type,
        "seller_id": product.seller_id,
    }


def split_order_products(order_products: Iterable[Mapping[str, Any]]) -> List[Tuple[int, List[Dict[str, Any]]]]:
    """
    Group snapshots by seller.

    Sellers appear in the order they are first seen and each group keeps the
    input order of its lines.
    """
    groups: Dict[int, List[Dict[str, Any]]] = {}
    for snapshot in order_products:
        record = dict(snapshot)
        seller_id = record.pop("seller_id")
        groups.setdefault(seller_id, []).append(record)
    return list(groups.items())


def order_display(order: Order, seller_fields: Sequence[str] = ("username",)) -> Dict[str, Any]:
    return {
        "id": order.id,
        "products": [
            {
                "productId": line.product_id,
                "name": line.name,
                "price": _money(line.price),
                "quantity": line.quantity,
                "photo": bool(line.has_photo),
            }
            for line in order.products
        ],
        "overallPrice": _money(order.overall_price),
        "seller": user_display(order.seller, seller_fields),
        "buyer": user_display(order.buyer),
        "deliveryAddress": order.delivery_address,
        "createdAt": order.created_at,
    }


def cart_display(items: Iterable[CartItem], products: Mapping[int, Product]) -> List[Dict[str, Any]]:
    """Cart rows with their product; rows whose product is gone are skipped."""
    display = []
    for item in items:
        product = products.get(item.product_id)
        if product is None:
            continue
        display.append({
            "id": item.id,
            "quantity": item.quantity,
            "product": product_display(product),
        })
    return display
