# storefront/models/product.py
from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, CheckConstraint, func
from storefront.database import Base

# Catalog entry. Orders copy its name and price at creation time,
# so later edits here never change existing orders.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(String)
    price = Column(Float, CheckConstraint("price >= 0"), nullable=False)
    image_url = Column(String, nullable=True)
    category = Column(String, ForeignKey("categories.name"), index=True, nullable=False)
    stock_quantity = Column(Integer, CheckConstraint("stock_quantity >= 0"), nullable=False, default=0)
    rating = Column(Float, CheckConstraint("rating >= 0 AND rating <= 5"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
