# storefront/schemas/order.py
from pydantic import BaseModel
from typing import Any, Dict, Optional
from datetime import datetime


# Input schema for placing a single-product order
class OrderCreate(BaseModel):
    firstname: str
    lastname: str
    phone: Optional[str] = None
    product_id: int
    # Range is checked by the workflow so a bad value answers 400, not 422
    quantity: int
    payment_method: str
    address: str


# Output schema for an order
class OrderResponse(BaseModel):
    id: int
    user_id: int
    firstname: str
    lastname: str
    phone: Optional[str] = None
    address: Optional[str] = None
    product_id: int
    product_name: str
    quantity: int
    price: float
    payment_method: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Schema for updating order status
class OrderStatusPatch(BaseModel):
    status: str
    # Admin correction outside the lifecycle table
    override: bool = False


# Output schema for a payment record
class PaymentResponse(BaseModel):
    id: int
    user_id: int
    name: Optional[str] = None
    order_id: int
    amount: float
    delivery_status: str
    payment_method: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Result of repairing an order/payment pair
class ReconcileReport(BaseModel):
    order_id: int
    repaired: bool
    changes: Dict[str, Any]
