# storefront/schemas/cart.py
from pydantic import BaseModel, Field
from typing import List, Optional

# Request schema for adding a product to the cart
class CartAddItem(BaseModel):
    product_id: int
    quantity: int = Field(default=1, ge=1)

# Response schema for a single cart line
class CartEntryOut(BaseModel):
    id: int
    product_id: int
    product_name: str
    quantity: int
    unit_price: Optional[float] = None
    line_total: Optional[float] = None

    class Config:
        from_attributes = True

# Response schema for the whole cart
class CartOut(BaseModel):
    items: List[CartEntryOut]
    total: float

# Payload for turning the cart into orders
class CheckoutPayload(BaseModel):
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    phone: Optional[str] = None
    address: str
    payment_method: str
