"""
User model

Accounts start as "pending" and must be "active" to trade. Deleting a user
cascades to the products they list; orders keep a null reference instead.
"""
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship

from marketplace.core.database import Base

USER_STATUS_PENDING = "pending"
USER_STATUS_ACTIVE = "active"


class User(Base):
    """User account model."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    # Core fields
    email = Column(String, unique=True, index=True, nullable=False)
    username = Column(String(20), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    status = Column(String(16), default=USER_STATUS_PENDING, nullable=False)
    is_admin = Column(Boolean, default=False)

    # Delivery address defaults, copied into orders at checkout
    first_name = Column(String(50))
    last_name = Column(String(50))
    street = Column(String(100))
    zip_code = Column(String(20))
    city = Column(String(100))
    country = Column(String(100))
    phone = Column(String(30))

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # Relationships
    products = relationship(
        "Product",
        back_populates="seller",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    cart_items = relationship(
        "CartItem",
        back_populates="user",
        order_by="CartItem.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def is_active(self) -> bool:
        return self.status == USER_STATUS_ACTIVE

    def address_snapshot(self) -> dict:
        """Profile address as stored on an order."""
        return {
            "firstName": self.first_name,
            "lastName": self.last_name,
            "street": self.street,
            "zipCode": self.zip_code,
            "city": self.city,
            "country": self.country,
            "phone": self.phone,
        }
