"""
Allowed status transitions for orders.

Order status (fulfillment) and payment status move independently, each
through its own table. Re-applying the current status is always allowed so
that repeated reconciliations stay harmless.
"""

from core.exceptions import InvalidStatusTransition
from models.enums import OrderStatus, PaymentStatus


ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED, OrderStatus.REFUNDED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED, OrderStatus.REFUNDED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.REFUNDED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.REFUNDED: frozenset(),
}

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset({PaymentStatus.PAID, PaymentStatus.FAILED}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PAID, PaymentStatus.PENDING}),
    PaymentStatus.PAID: frozenset({PaymentStatus.REFUNDED}),
    PaymentStatus.REFUNDED: frozenset(),
}


def can_transition_order(current: OrderStatus, target: OrderStatus) -> bool:
    return current == target or target in ORDER_TRANSITIONS[current]


def can_transition_payment(current: PaymentStatus, target: PaymentStatus) -> bool:
    return current == target or target in PAYMENT_TRANSITIONS[current]


def ensure_order_transition(current: OrderStatus, target: OrderStatus) -> None:
    if not can_transition_order(current, target):
        raise InvalidStatusTransition("status", current.value, target.value)


def ensure_payment_transition(current: PaymentStatus, target: PaymentStatus) -> None:
    if not can_transition_payment(current, target):
        raise InvalidStatusTransition("paymentStatus", current.value, target.value)
