from marketplace.models.user import User
from marketplace.models.product import Product, ProductCondition
from marketplace.models.cart import CartItem
from marketplace.models.order import Order, OrderProduct
