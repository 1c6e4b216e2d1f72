"""
Cart schemas
"""
import enum

from pydantic import Field

from marketplace.schemas.base import CamelModel


class CartItemAdd(CamelModel):
    product: int = Field(..., gt=0)
    quantity: int = Field(1, ge=1)


class CartUpdateAction(str, enum.Enum):
    INCREMENT = "INCREMENT"
    DECREMENT = "DECREMENT"
    NUMBER = "NUMBER"
