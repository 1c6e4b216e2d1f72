"""
Cart model

product_id is a weak reference: no FK, so a sold-out (deleted) product leaves
a dangling row until the next reconciliation drops it.
"""
from sqlalchemy import Column, Integer, ForeignKey, DateTime, Index, CheckConstraint
from sqlalchemy.orm import relationship

from marketplace.core.database import Base
from marketplace.core.utils import utcnow


class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, nullable=False)

    quantity = Column(Integer, nullable=False, default=1)
    position = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="cart_items")

    __table_args__ = (
        Index('ix_cart_items_user_product', 'user_id', 'product_id'),
        CheckConstraint("quantity >= 1", name="ck_cart_items_quantity_positive"),
    )
