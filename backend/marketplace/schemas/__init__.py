from marketplace.schemas.user import (
    UserCreate,
    UserLogin,
    UserUpdate,
    UserResponse,
    UserMeResponse,
    PublicUserResponse,
    Token,
)
from marketplace.schemas.product import ProductCreate, ProductUpdate
from marketplace.schemas.cart import CartItemAdd, CartUpdateAction
from marketplace.schemas.transaction import (
    SingleItem,
    TransactionPreviewRequest,
    TransactionItemIn,
    OrderCreate,
)
