# storefront/models/cart.py
from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, UniqueConstraint, CheckConstraint, func
from sqlalchemy.orm import relationship
from storefront.database import Base

# A single product line in a user's cart
class CartEntry(Base):
    __tablename__ = "cart_entries"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), index=True, nullable=False)
    product_name = Column(String, nullable=False)
    quantity = Column(Integer, CheckConstraint("quantity >= 1"), nullable=False, default=1)
    created_at = Column(DateTime, server_default=func.now())

    product = relationship("Product")

    __table_args__ = (
        # One line per product; adding it again bumps the quantity
        UniqueConstraint("user_id", "product_id", name="uq_cartentry_user_product"),
    )
