# storefront/services/lifecycle.py
from typing import Dict, FrozenSet, Optional

from storefront.exceptions import InvalidArgument, InvalidStatusTransition
from storefront.models.order import OrderStatus
from storefront.models.payment import PaymentStatus

TERMINAL: FrozenSet[OrderStatus] = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

# Forward-only moves; anything else needs an admin override
TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({
        OrderStatus.PROCESSING, OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED, OrderStatus.CANCELLED,
    }),
    OrderStatus.PROCESSING: frozenset({
        OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED, OrderStatus.CANCELLED,
    }),
    OrderStatus.IN_TRANSIT: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def parse_status(value) -> OrderStatus:
    """Accept an OrderStatus or its wire value, case-insensitively."""
    if isinstance(value, OrderStatus):
        return value
    text = (value or "").strip().lower()
    for status in OrderStatus:
        if status.value.lower() == text:
            return status
    allowed = ", ".join(s.value for s in OrderStatus)
    raise InvalidArgument(f"Unknown order status '{value}'. Allowed: {allowed}")


def coerce_status(value) -> Optional[OrderStatus]:
    # Stored rows should always hold a known value; None flags one that doesn't
    try:
        return parse_status(value)
    except InvalidArgument:
        return None


def settlement_for(status: Optional[OrderStatus]) -> PaymentStatus:
    if status == OrderStatus.DELIVERED:
        return PaymentStatus.SUCCESS
    if status == OrderStatus.CANCELLED:
        return PaymentStatus.FAILED
    return PaymentStatus.PENDING


def check_transition(current: Optional[OrderStatus], target: OrderStatus, override: bool = False) -> None:
    if override or current == target:
        return
    if current is None:
        raise InvalidStatusTransition(
            f"Order has an unrecognised status; moving it to {target.value} needs an admin override"
        )
    if current in TERMINAL:
        raise InvalidStatusTransition(
            f"Cannot change status from {current.value}: the order is closed"
        )
    if target not in TRANSITIONS[current]:
        raise InvalidStatusTransition(
            f"Cannot change status from {current.value} to {target.value}"
        )
