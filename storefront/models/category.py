# storefront/models/category.py
from sqlalchemy import Column, Integer, String
from storefront.database import Base

# Product grouping; products point at a category by its name
class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False, index=True)
    description = Column(String, nullable=True)
