"""
Product model

quantity is the authoritative stock count. Purchases go through
CatalogStore.adjust_quantity, never through attribute assignment, and a
product whose stock reaches zero is deleted.
"""
import enum
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Numeric, LargeBinary, CheckConstraint
from sqlalchemy.orm import relationship, deferred

from marketplace.core.database import Base


class ProductCondition(str, enum.Enum):
    NEW = "new"
    USED = "used"
    NOT_APPLICABLE = "not_applicable"


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), nullable=False, index=True)
    description = Column(String(800), nullable=False)

    # Numeric(12,2) so prices never pass through binary floats
    price = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    quantity_sold = Column(Integer, nullable=False, default=0)
    buyer_quantity = Column(Integer, nullable=False, default=0)
    condition = Column(String(20), nullable=False, default=ProductCondition.NOT_APPLICABLE.value)

    seller_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Raw upload; only its presence is ever serialized with the product
    photo = deferred(Column(LargeBinary, nullable=True))
    has_photo = Column(Boolean, nullable=False, default=False)
    photo_content_type = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    seller = relationship("User", back_populates="products")

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
    )
