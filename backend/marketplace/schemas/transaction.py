"""
Transaction and checkout schemas

TransactionItem is the wire shape of one reconciled line:
{productId, name, price, quantity, photo, seller: {username}}.
"""
from typing import List, Optional
from pydantic import Field

from marketplace.schemas.base import CamelModel
from marketplace.schemas.user import AddressFields


class SingleItem(CamelModel):
    product: int
    quantity: int


class TransactionPreviewRequest(CamelModel):
    single_item: Optional[SingleItem] = None


class SellerRef(CamelModel):
    username: Optional[str] = None


class TransactionItemIn(CamelModel):
    product_id: int = Field(..., gt=0)
    name: Optional[str] = None
    price: Optional[float] = None
    quantity: int = Field(..., ge=1)
    photo: bool = False
    seller: Optional[SellerRef] = None


class OrderCreate(CamelModel):
    transaction: List[TransactionItemIn] = Field(..., min_length=1)
    delivery_address: Optional[AddressFields] = None
    clear_cart: bool = False
    from_cart: bool = False
