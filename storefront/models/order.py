# storefront/models/order.py
import enum
from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, func
from sqlalchemy.orm import relationship
from storefront.database import Base

# Lifecycle states of an order; Delivered and Cancelled are terminal
class OrderStatus(str, enum.Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    IN_TRANSIT = "InTransit"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"

# Single-product purchase with the price snapshotted at creation
class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)

    # Customer details as entered at checkout
    firstname = Column(String, nullable=False)
    lastname = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    address = Column(String, nullable=True)

    # Product is referenced, not owned; the name is a copy
    product_id = Column(Integer, index=True, nullable=False)
    product_name = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)

    payment_method = Column(String, nullable=True)
    status = Column(String, nullable=False, default=OrderStatus.PENDING.value, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Bumped on every UPDATE; a stale writer gets StaleDataError instead of a lost update
    version = Column(Integer, nullable=False)

    payment = relationship("Payment", back_populates="order", uselist=False)

    __mapper_args__ = {"version_id_col": version}
