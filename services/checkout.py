"""
Checkout session for one shopper.

Mirrors the storefront's Review -> Payment -> Success steps as an explicit
object instead of UI state. The session holds no database state of its own;
every step goes through OrderService / PaymentService, so the order store
stays the only persistent record.
"""

import enum
from typing import Optional
from sqlalchemy.orm import Session
from core.exceptions import PaymentNotCompletedError
from models.orders import Order
from schemas.order_schemas import CreateOrderRequest
from schemas.payment_schemas import ConfirmPaymentRequest, CreatePaymentIntentRequest
from services.cart import Cart
from services.order_service import OrderService
from services.payment_gateway import SUCCEEDED, PaymentGateway, PaymentIntent
from services.payment_service import PaymentService
from utils.logger import get_logger

logger = get_logger(__name__)


class CheckoutStep(str, enum.Enum):
    REVIEW = "review"
    PAYMENT = "payment"
    SUCCESS = "success"


class CheckoutError(Exception):
    """Raised when a step is invoked out of order."""


class CheckoutSession:

    def __init__(self, user: dict, cart: Cart):
        self.user = user
        self.cart = cart
        self.step = CheckoutStep.REVIEW
        self.order: Optional[Order] = None
        self.payment_intent: Optional[PaymentIntent] = None

    def place_order(self, db: Session, shipping_address_id: Optional[int] = None,
                    billing_address_id: Optional[int] = None, notes: Optional[str] = None) -> Order:
        self._require(CheckoutStep.REVIEW)
        if not len(self.cart):
            raise CheckoutError("Cart is empty")

        request = CreateOrderRequest(
            items=self.cart.order_lines(),
            shipping_address_id=shipping_address_id,
            billing_address_id=billing_address_id,
            notes=notes
        )
        self.order = OrderService.create_order(request, self.user["user_id"], db)
        self.step = CheckoutStep.PAYMENT
        return self.order

    def start_payment(self, db: Session, gateway: PaymentGateway) -> PaymentIntent:
        """Requests an intent for the order total; its client secret goes to the card form."""
        self._require(CheckoutStep.PAYMENT)

        request = CreatePaymentIntentRequest(amount=self.order.total, order_id=self.order.id)
        self.payment_intent = PaymentService.create_payment_intent(request, self.user, db, gateway)
        return self.payment_intent

    def complete(self, db: Session, gateway: PaymentGateway, client_status: str) -> Order:
        """
        Finishes checkout after the card form reports back.

        `client_status` only decides whether it is worth asking the server;
        the step moves to SUCCESS only once server-side reconciliation has
        marked the order paid. On any failure the session stays on PAYMENT
        so the shopper can try again.
        """
        self._require(CheckoutStep.PAYMENT)
        if self.payment_intent is None:
            raise CheckoutError("Payment has not been started")

        if client_status != SUCCEEDED:
            raise PaymentNotCompletedError(payment_status=client_status)

        request = ConfirmPaymentRequest(payment_intent_id=self.payment_intent.id, order_id=self.order.id)
        order, _ = PaymentService.confirm_payment(request, self.user["user_id"], db, gateway)

        self.order = order
        self.step = CheckoutStep.SUCCESS
        self.cart.clear()

        logger.info(
            "Checkout completed",
            extra={"user_id": self.user["user_id"], "order_id": order.id}
        )
        return order

    def _require(self, step: CheckoutStep) -> None:
        if self.step != step:
            raise CheckoutError(f"Expected checkout step {step.value}, currently at {self.step.value}")
