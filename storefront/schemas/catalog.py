# storefront/schemas/catalog.py
from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional
from datetime import datetime


# Base configuration for ORM compatibility
class ORMBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Request schema for a new category
class CategoryCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None


class CategoryOut(ORMBase):
    id: int
    name: str
    description: Optional[str] = None


# Shared product attributes
class ProductBase(ORMBase):
    name: str
    description: Optional[str] = None
    price: float = Field(ge=0)
    image_url: Optional[str] = None
    category: str
    stock_quantity: int = Field(default=0, ge=0)
    rating: Optional[float] = Field(default=None, ge=0, le=5)


class ProductCreate(ProductBase):
    pass


# Partial update, every field optional
class ProductUpdate(ORMBase):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    image_url: Optional[str] = None
    category: Optional[str] = None
    stock_quantity: Optional[int] = Field(None, ge=0)
    rating: Optional[float] = Field(None, ge=0, le=5)

    # Leaving a field out keeps it; sending null for a required column is an error
    @field_validator("name", "price", "category", "stock_quantity")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("Field cannot be null")
        return v


class ProductOut(ProductBase):
    id: int
    created_at: Optional[datetime] = None
