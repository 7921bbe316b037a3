# storefront/routes/orders.py
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session
import logging

from storefront.database import get_db
from storefront.exceptions import OrderNotFound, StorefrontError
from storefront.models.order import Order
from storefront.models.users import User
from storefront.schemas.order import (
    OrderCreate, OrderResponse, OrderStatusPatch, PaymentResponse, ReconcileReport,
)
from storefront.services import orders as order_service
from storefront.services.orders import Customer
from storefront.utils.audit import write_log, client_ip
from storefront.utils.tokenJWT import get_current_user, admin_required

router = APIRouter(prefix="/orders", tags=["Orders"])
logger = logging.getLogger(__name__)

# Load an order the caller may see; other users' orders look like missing ones
def _visible_order(db: Session, order_id: int, user: User) -> Order:
    order = order_service.get_order(db, order_id)
    if order.user_id != user.id and not user.is_admin:
        raise OrderNotFound(f"Order {order_id} not found")
    return order


# Place a single-product order together with its payment
@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    customer = Customer(
        user_id=current_user.id,
        firstname=payload.firstname,
        lastname=payload.lastname,
        phone=payload.phone,
    )
    order = order_service.create_order(
        db, customer,
        product_id=payload.product_id,
        quantity=payload.quantity,
        payment_method=payload.payment_method,
        address=payload.address,
    )
    write_log(db, user_id=current_user.id, action="ORDER_CREATE", resource="orders", resource_id=order.id,
              ip=client_ip(request), meta={"product_id": order.product_id, "quantity": order.quantity, "price": order.price})
    return order


# All orders (Admin only)
@router.get("", response_model=List[OrderResponse])
def list_orders(
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_required)
):
    return order_service.list_orders(db)


# Orders placed by one user; customers may only ask about themselves
@router.get("/user/{user_id}", response_model=List[OrderResponse])
def list_user_orders(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    if user_id != current_user.id and not current_user.is_admin:
        raise HTTPException(status_code=403, detail="Forbidden")
    return order_service.orders_for_user(db, user_id)


@router.get("/{order_id}", response_model=OrderResponse)
def get_order_detail(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return _visible_order(db, order_id, current_user)


@router.get("/{order_id}/payment", response_model=PaymentResponse)
def get_order_payment(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    order = _visible_order(db, order_id, current_user)
    return order_service.get_payment_for_order(db, order.id)


# Move an order through its lifecycle (Admin only)
@router.put("/{order_id}/status", response_model=OrderResponse)
def update_order_status(
    order_id: int,
    payload: OrderStatusPatch,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_required)
):
    old_status = order_service.get_order(db, order_id).status
    try:
        order = order_service.set_order_status(db, order_id, payload.status, override=payload.override)
    except StorefrontError as e:
        write_log(db, user_id=current_user.id, action="ORDER_STATUS_CHANGE", resource="orders", resource_id=order_id,
                  status="FAIL", ip=client_ip(request),
                  meta={"old": old_status, "new": payload.status, "reason": e.message})
        raise

    write_log(db, user_id=current_user.id, action="ORDER_STATUS_CHANGE", resource="orders", resource_id=order.id,
              ip=client_ip(request), meta={"old": old_status, "new": order.status, "override": payload.override})
    return order


# Cancel an order; the owner or an admin may do this, only an admin may override
@router.put("/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(
    order_id: int,
    request: Request,
    override: bool = Query(False, description="Admin only: cancel even a delivered order"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    if override and not current_user.is_admin:
        raise HTTPException(status_code=403, detail="Override requires admin role")

    old_status = _visible_order(db, order_id, current_user).status
    try:
        order = order_service.cancel_order(db, order_id, override=override)
    except StorefrontError as e:
        write_log(db, user_id=current_user.id, action="ORDER_CANCEL", resource="orders", resource_id=order_id,
                  status="FAIL", ip=client_ip(request), meta={"old": old_status, "reason": e.message})
        raise

    write_log(db, user_id=current_user.id, action="ORDER_CANCEL", resource="orders", resource_id=order.id,
              ip=client_ip(request), meta={"old": old_status, "override": override})
    return order


# Re-sync the payment from its order (Admin only)
@router.post("/{order_id}/reconcile", response_model=ReconcileReport)
def reconcile_order(
    order_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_required)
):
    report = order_service.reconcile_order(db, order_id)
    if report["repaired"]:
        logger.warning("Order %s payment repaired by user %s: %s", order_id, current_user.id, report["changes"])
        write_log(db, user_id=current_user.id, action="ORDER_RECONCILE", resource="orders", resource_id=order_id,
                  ip=client_ip(request), meta=report["changes"])
    return report
