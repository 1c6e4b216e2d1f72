"""
Product schemas
"""
from typing import Optional
from pydantic import Field

from marketplace.models.product import ProductCondition
from marketplace.schemas.base import CamelModel

MIN_PRICE = 0.01
MAX_PRICE = 1_000_000
MAX_STOCK = 100_000


class ProductCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=150)
    description: str = Field(..., min_length=1, max_length=800)
    price: float = Field(..., ge=MIN_PRICE, le=MAX_PRICE)
    quantity: int = Field(1, ge=1, le=MAX_STOCK)
    condition: ProductCondition = ProductCondition.NOT_APPLICABLE


class ProductUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = Field(None, min_length=1, max_length=800)
    price: Optional[float] = Field(None, ge=MIN_PRICE, le=MAX_PRICE)
    quantity: Optional[int] = Field(None, ge=1, le=MAX_STOCK)
    condition: Optional[ProductCondition] = None
