"""Order/payment workflow.

Every order is created together with exactly one payment, and every later
status change rewrites both rows inside one database transaction. The payment
mirrors the order: ``delivery_status`` equals the order status and ``status``
is the settlement derived from it (Delivered -> Success, Cancelled -> Failed,
anything else -> Pending).

Functions here take a plain SQLAlchemy ``Session`` and raise
``storefront.exceptions`` errors; the session is rolled back before any
error leaves a mutating call.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from storefront.exceptions import (
    ConcurrentModification, InvalidArgument, NotFound, OrderNotFound,
    OrderPaymentMismatch, PaymentNotFound, ProductNotFound, StorageFailure,
    StorefrontError,
)
from storefront.models.cart import CartEntry
from storefront.models.order import Order, OrderStatus
from storefront.models.payment import Payment
from storefront.models.product import Product
from storefront.services.catalog import find_product
from storefront.services.lifecycle import (
    check_transition, coerce_status, parse_status, settlement_for,
)

logger = logging.getLogger(__name__)


@dataclass
class Customer:
    """Who the order is for, as entered at checkout."""
    user_id: int
    firstname: str
    lastname: str
    phone: Optional[str] = None


# ---- helpers ----

def _require_quantity(quantity) -> int:
    if quantity is None or isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidArgument("Quantity must be a whole number")
    if quantity <= 0:
        raise InvalidArgument("Quantity must be greater than zero")
    return quantity


def order_amount(product: Product, quantity: int) -> float:
    if product.price is None or product.price < 0:
        raise InvalidArgument(f"Product {product.id} has no valid price")
    return round(product.price * quantity, 2)


def _new_order(customer: Customer, product: Product, quantity: int, payment_method, address) -> Order:
    return Order(
        user_id=customer.user_id,
        firstname=customer.firstname,
        lastname=customer.lastname,
        phone=customer.phone,
        address=address,
        product_id=product.id,
        product_name=product.name,
        quantity=quantity,
        price=order_amount(product, quantity),
        payment_method=payment_method,
        status=OrderStatus.PENDING.value,
    )


def _open_payment(order: Order) -> Payment:
    status = coerce_status(order.status)
    return Payment(
        user_id=order.user_id,
        name=f"{order.firstname} {order.lastname}".strip(),
        order_id=order.id,
        amount=order.price,
        delivery_status=order.status,
        payment_method=order.payment_method,
        status=settlement_for(status).value,
    )


def _commit(db: Session) -> None:
    try:
        db.commit()
    except StaleDataError as exc:
        raise ConcurrentModification("Order was modified by another request, retry") from exc
    except SQLAlchemyError as exc:
        raise StorageFailure(f"Commit failed: {exc}") from exc


@contextmanager
def _reading(what: str):
    try:
        yield
    except SQLAlchemyError as exc:
        raise StorageFailure(f"Could not read {what}: {exc}") from exc


def _place(db: Session, customer: Customer, product: Product, quantity: int, payment_method, address) -> Order:
    """Write one order and its payment into the open transaction, without committing."""
    order = _new_order(customer, product, quantity, payment_method, address)
    db.add(order)
    try:
        db.flush()
    except SQLAlchemyError as exc:
        raise StorageFailure(f"Could not write order: {exc}") from exc

    try:
        payment = _open_payment(order)
        db.add(payment)
        db.flush()
    except SQLAlchemyError as exc:
        logger.error("Payment write failed for order %s, rolling the order back: %s", order.id, exc)
        raise OrderPaymentMismatch(f"Payment for order {order.id} could not be recorded") from exc
    return order


def _load_pair(db: Session, order_id: int) -> Tuple[Order, Payment]:
    # Row locks where the backend has them; the version column covers the rest.
    # populate_existing drops whatever copy the session already holds.
    with _reading("order"):
        order = (
            db.query(Order).filter(Order.id == order_id)
            .with_for_update().populate_existing().first()
        )
        if not order:
            raise OrderNotFound(f"Order {order_id} not found")
        payment = (
            db.query(Payment).filter(Payment.order_id == order.id)
            .with_for_update().populate_existing().first()
        )
    if not payment:
        raise PaymentNotFound(f"Payment for order {order_id} not found")
    return order, payment


def _apply(order: Order, payment: Payment, status: OrderStatus) -> None:
    order.status = status.value
    # Always UPDATE the order row so its version is checked, even for a no-op
    flag_modified(order, "status")
    payment.delivery_status = status.value
    payment.status = settlement_for(status).value


def _transition(db: Session, order_id: int, target: OrderStatus, override: bool) -> Order:
    try:
        order, payment = _load_pair(db, order_id)
        current = coerce_status(order.status)
        check_transition(current, target, override)
        old_status = order.status
        _apply(order, payment, target)
        # Payment and order rows go out in the same transaction
        _commit(db)
    except StorefrontError:
        db.rollback()
        raise
    db.refresh(order)
    if override and current is not None and current != target:
        logger.warning("Order %s moved %s -> %s by override", order.id, old_status, order.status)
    else:
        logger.info("Order %s moved %s -> %s", order.id, old_status, order.status)
    return order


# ---- operations ----

def create_order(
    db: Session,
    customer: Customer,
    product_id: int,
    quantity: int,
    payment_method: Optional[str] = None,
    address: Optional[str] = None,
) -> Order:
    """Create an order and its pending payment.

    Quantity and product are validated before anything is written. If the
    payment cannot be stored the order is rolled back with it and
    ``OrderPaymentMismatch`` is raised, so no order is ever left unpaired.
    """
    _require_quantity(quantity)
    with _reading("product"):
        product = find_product(db, product_id)
    if not product:
        raise ProductNotFound(f"Product {product_id} not found")

    try:
        order = _place(db, customer, product, quantity, payment_method, address)
        _commit(db)
    except StorefrontError:
        db.rollback()
        raise
    db.refresh(order)
    logger.info("Order %s created for user %s: %s x%s = %.2f",
                order.id, order.user_id, order.product_name, order.quantity, order.price)
    return order


def set_order_status(db: Session, order_id: int, status, *, override: bool = False) -> Order:
    """Move an order to ``status`` and mirror it onto the payment.

    Moves outside the lifecycle table, including leaving Delivered or
    Cancelled, raise ``InvalidStatusTransition`` unless ``override`` is set.
    """
    target = parse_status(status)
    return _transition(db, order_id, target, override)


def cancel_order(db: Session, order_id: int, *, override: bool = False) -> Order:
    """Cancel an order and fail its payment.

    Cancelling twice is harmless. A delivered order stays delivered unless
    ``override`` is set.
    """
    return _transition(db, order_id, OrderStatus.CANCELLED, override)


def checkout_cart(
    db: Session,
    customer: Customer,
    payment_method: Optional[str] = None,
    address: Optional[str] = None,
) -> List[Order]:
    """Turn every cart line into its own order and empty the cart.

    All lines are validated up front; the orders, payments and cart removal
    commit together or not at all.
    """
    with _reading("cart"):
        entries = (
            db.query(CartEntry)
            .filter(CartEntry.user_id == customer.user_id)
            .order_by(CartEntry.id)
            .all()
        )
    if not entries:
        raise InvalidArgument("Cart is empty")

    lines = []
    for entry in entries:
        _require_quantity(entry.quantity)
        with _reading("product"):
            product = find_product(db, entry.product_id)
        if not product:
            raise ProductNotFound(f"Product {entry.product_id} in cart no longer exists")
        lines.append((entry, product))

    try:
        orders = [
            _place(db, customer, product, entry.quantity, payment_method, address)
            for entry, product in lines
        ]
        for entry, _ in lines:
            db.delete(entry)
        _commit(db)
    except StorefrontError:
        db.rollback()
        raise

    for order in orders:
        db.refresh(order)
    logger.info("Checkout for user %s created orders %s", customer.user_id, [o.id for o in orders])
    return orders


# ---- consistency ----

def check_pair(order: Order, payment: Optional[Payment]) -> None:
    """Raise OrderPaymentMismatch if the payment no longer mirrors the order."""
    if payment is None:
        raise OrderPaymentMismatch(f"Order {order.id} has no payment")
    expected = settlement_for(coerce_status(order.status)).value
    problems = []
    if payment.delivery_status != order.status:
        problems.append(f"delivery_status {payment.delivery_status!r} != {order.status!r}")
    if payment.status != expected:
        problems.append(f"status {payment.status!r} != {expected!r}")
    if round(payment.amount or 0, 2) != round(order.price or 0, 2):
        problems.append(f"amount {payment.amount} != {order.price}")
    if problems:
        raise OrderPaymentMismatch(f"Order {order.id} out of sync: " + "; ".join(problems))


def reconcile_order(db: Session, order_id: int) -> Dict[str, Any]:
    """Repair the payment of an order from the order itself.

    The order is treated as the source of truth. A missing payment is
    recreated, a drifted one is overwritten.
    """
    try:
        with _reading("order"):
            order = (
                db.query(Order).filter(Order.id == order_id)
                .with_for_update().populate_existing().first()
            )
            if not order:
                raise OrderNotFound(f"Order {order_id} not found")
            payment = db.query(Payment).filter(Payment.order_id == order.id).populate_existing().first()

        changes: Dict[str, Any] = {}
        try:
            check_pair(order, payment)
        except OrderPaymentMismatch as exc:
            logger.warning("Reconciling: %s", exc.message)
            if payment is None:
                db.add(_open_payment(order))
                changes["payment"] = "created"
            else:
                expected = settlement_for(coerce_status(order.status)).value
                if payment.delivery_status != order.status:
                    changes["delivery_status"] = {"old": payment.delivery_status, "new": order.status}
                    payment.delivery_status = order.status
                if payment.status != expected:
                    changes["status"] = {"old": payment.status, "new": expected}
                    payment.status = expected
                if round(payment.amount or 0, 2) != round(order.price or 0, 2):
                    changes["amount"] = {"old": payment.amount, "new": order.price}
                    payment.amount = order.price
            _commit(db)
    except StorefrontError:
        db.rollback()
        raise
    return {"order_id": order_id, "repaired": bool(changes), "changes": changes}


# ---- queries ----

def list_orders(db: Session) -> List[Order]:
    with _reading("orders"):
        return db.query(Order).order_by(Order.created_at.desc(), Order.id.desc()).all()


def orders_for_user(db: Session, user_id: int) -> List[Order]:
    with _reading("orders"):
        orders = (
            db.query(Order)
            .filter(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )
    if not orders:
        raise NotFound("No orders")
    return orders


def get_order(db: Session, order_id: int) -> Order:
    with _reading("order"):
        order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise OrderNotFound(f"Order {order_id} not found")
    return order


def get_payment_for_order(db: Session, order_id: int) -> Payment:
    with _reading("payment"):
        payment = db.query(Payment).filter(Payment.order_id == order_id).first()
    if not payment:
        raise PaymentNotFound(f"Payment for order {order_id} not found")
    return payment


def list_payments(db: Session) -> List[Payment]:
    with _reading("payments"):
        return db.query(Payment).order_by(Payment.id.desc()).all()


def get_payment(db: Session, payment_id: int) -> Payment:
    with _reading("payment"):
        payment = db.query(Payment).filter(Payment.id == payment_id).first()
    if not payment:
        raise PaymentNotFound(f"Payment {payment_id} not found")
    return payment
