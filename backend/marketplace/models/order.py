"""
Order models

An order belongs to exactly one seller and is never mutated after creation.
Line items are frozen copies of the product at commit time, so product_id
carries no FK and deleting the product leaves the order intact.
"""
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, JSON, Numeric, LargeBinary, Boolean, Index
from sqlalchemy.orm import relationship, deferred

from marketplace.core.database import Base
from marketplace.core.utils import utcnow


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    # SET NULL keeps order history when an account is removed
    seller_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    buyer_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    overall_price = Column(Numeric(12, 2), nullable=False)
    delivery_address = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow)

    seller = relationship("User", foreign_keys=[seller_id])
    buyer = relationship("User", foreign_keys=[buyer_id])
    products = relationship(
        "OrderProduct",
        back_populates="order",
        order_by="OrderProduct.position",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index('ix_orders_seller_id', 'seller_id'),
        Index('ix_orders_buyer_id', 'buyer_id'),
    )


class OrderProduct(Base):
    """Product snapshot embedded in an order."""
    __tablename__ = "order_products"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    product_id = Column(Integer, nullable=False)
    name = Column(String(150), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    photo = deferred(Column(LargeBinary, nullable=True))
    has_photo = Column(Boolean, nullable=False, default=False)
    photo_content_type = Column(String(50), nullable=True)

    order = relationship("Order", back_populates="products")
