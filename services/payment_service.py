from typing import Optional
from fastapi import HTTPException
from sqlalchemy.orm import Session
from starlette import status
from core.config import settings
from core.exceptions import (AppError, NotFoundError, OrderStateConflict,
                             PaymentNotCompletedError, WebhookSignatureError)
from models.enums import PaymentStatus
from models.orders import Order
from schemas.payment_schemas import (ConfirmPaymentRequest, CreateCustomerRequest,
                                     CreatePaymentIntentRequest, RefundRequest)
from services.auth_service import AuthService
from services.order_service import OrderService
from services.payment_gateway import Customer, GatewayEvent, PaymentGateway, PaymentIntent, PaymentMethod, Refund
from utils.logger import get_logger, sanitize_log_data
from utils.money import round2

logger = get_logger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"


class PaymentService:
    """
    Payment steps of the checkout workflow.

    The gateway is always the source of truth: an order only becomes Paid
    after the intent has been fetched server-side (or delivered through a
    signed webhook) and reported as succeeded.
    """

    @staticmethod
    def create_payment_intent(request: CreatePaymentIntentRequest, user: dict,
                              db: Session, gateway: PaymentGateway) -> PaymentIntent:
        currency = request.currency or settings.DEFAULT_CURRENCY
        metadata = {"userId": str(user["user_id"]), "userEmail": user["email"]}

        order = None
        if request.order_id is not None:
            order = OrderService.get_order(db, request.order_id, user["user_id"])
            if order.payment_status in (PaymentStatus.PAID, PaymentStatus.REFUNDED):
                raise OrderStateConflict("Order has already been paid")
            if round2(request.amount) != round2(order.total):
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                    detail="Amount does not match order total")
            metadata["orderId"] = str(order.id)

        intent = gateway.create_payment_intent(request.amount, currency, metadata)

        if order is not None:
            OrderService.attach_payment_intent(db, order, intent.id)

        logger.info(
            "Payment intent issued",
            extra=sanitize_log_data({
                "user_id": user["user_id"],
                "order_id": request.order_id,
                "payment_intent_id": intent.id,
                "client_secret": intent.client_secret
            })
        )
        return intent


    @staticmethod
    def get_payment_intent(intent_id: str, user: dict, gateway: PaymentGateway) -> PaymentIntent:
        intent = gateway.get_payment_intent(intent_id)

        owner = intent.metadata.get("userId")
        if owner is not None and owner != str(user["user_id"]):
            raise NotFoundError("Payment intent not found")

        return intent


    @staticmethod
    def create_customer(request: CreateCustomerRequest, user: dict, db: Session,
                        gateway: PaymentGateway) -> Customer:
        """
        Registers the user with the gateway so cards can be saved against
        them. Each account gets at most one gateway customer.
        """
        account = AuthService.get_active_user_by_id(db, user["user_id"])
        if account is None:
            raise NotFoundError("User not found")
        if account.stripe_customer_id:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT,
                                detail="Payment customer already exists")

        name = request.name or " ".join(part for part in (account.first_name, account.last_name) if part) or None
        customer = gateway.create_customer(
            request.email or account.email,
            name,
            {"userId": str(account.id)}
        )

        account.stripe_customer_id = customer.id
        db.commit()

        logger.info("Payment customer created", extra={"user_id": account.id, "customer_id": customer.id})
        return customer


    @staticmethod
    def list_payment_methods(customer_id: Optional[str], user: dict, db: Session,
                             gateway: PaymentGateway) -> list[PaymentMethod]:
        """Saved cards of the user's own gateway customer."""
        account = AuthService.get_active_user_by_id(db, user["user_id"])
        own_customer = account.stripe_customer_id if account else None

        customer_id = customer_id or own_customer
        if not customer_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                detail="Customer ID is required")
        if customer_id != own_customer:
            raise NotFoundError("Customer not found")

        return gateway.list_payment_methods(customer_id)


    @staticmethod
    def confirm_payment(request: ConfirmPaymentRequest, user_id: int,
                        db: Session, gateway: PaymentGateway) -> tuple[Order, PaymentIntent]:
        """
        Reconciles an order with the gateway's view of its payment.

        Never trusts what the client says about the payment: the intent is
        re-fetched here. Repeating the call for an already-paid order is a
        no-op that returns the order as it is.
        """
        order = OrderService.get_order(db, request.order_id, user_id)
        intent = gateway.get_payment_intent(request.payment_intent_id)

        PaymentService._ensure_settles_order(db, intent, order)
        OrderService.mark_paid(db, order, intent.id)

        return order, intent


    @staticmethod
    def refund(request: RefundRequest, user: dict, db: Session,
               gateway: PaymentGateway) -> tuple[Refund, Order]:
        owner_id = None if user.get("user_role") == "admin" else user["user_id"]
        order = OrderService.find_by_payment_intent(db, request.payment_intent_id, owner_id)
        if order is None:
            raise NotFoundError("Order not found for this payment")

        if order.payment_status == PaymentStatus.REFUNDED:
            raise OrderStateConflict("Order has already been refunded")
        if order.payment_status != PaymentStatus.PAID:
            raise OrderStateConflict("Only paid orders can be refunded")

        amount = request.amount if request.amount is not None else OrderService.refundable_amount(order)
        OrderService.ensure_refundable(order, amount)

        # A refund of the whole charge is sent without an amount
        untouched = request.amount is None and not order.refunded_amount
        refund = gateway.create_refund(request.payment_intent_id, None if untouched else amount, request.reason)

        fully_refunded = OrderService.record_refund(db, order, refund.amount)

        logger.info(
            "Refund issued",
            extra={
                "order_id": order.id,
                "refund_id": refund.id,
                "amount": str(refund.amount),
                "refunded_total": str(order.refunded_amount),
                "fully_refunded": fully_refunded
            }
        )
        return refund, order


    @staticmethod
    def handle_webhook(payload: bytes, signature: Optional[str], db: Session,
                       gateway: PaymentGateway) -> GatewayEvent:
        """
        Applies a signed gateway event.

        Payment successes run the same idempotent reconciliation as the
        confirm-payment call, failures move a Pending payment to Failed.
        Every other event type is acknowledged and ignored. Events that
        cannot be applied are logged; the gateway still gets its 200 so it
        stops redelivering them.
        """
        if not signature:
            raise WebhookSignatureError("Missing signature header", message="Missing stripe signature")

        event = gateway.verify_webhook_signature(payload, signature)

        if event.type not in (PAYMENT_SUCCEEDED, PAYMENT_FAILED):
            logger.info("Unhandled webhook event type", extra={"event_id": event.id, "event_type": event.type})
            return event

        intent = event.payment_intent
        order = PaymentService._order_for_intent(db, intent) if intent else None
        if order is None:
            logger.warning(
                "Webhook event does not match any order",
                extra={"event_id": event.id, "event_type": event.type}
            )
            return event

        try:
            if event.type == PAYMENT_SUCCEEDED:
                PaymentService._ensure_settles_order(db, intent, order)
                OrderService.mark_paid(db, order, intent.id)
            elif OrderService.mark_payment_failed(db, order):
                logger.info(
                    "Order payment marked as failed",
                    extra={"order_id": order.id, "payment_intent_id": intent.id}
                )
        except AppError as e:
            logger.error(
                f"Webhook event could not be applied: {e.message}",
                extra={
                    "event_id": event.id,
                    "event_type": event.type,
                    "order_id": order.id,
                    "error_type": type(e).__name__
                }
            )

        return event


    @staticmethod
    def _ensure_settles_order(db: Session, intent: PaymentIntent, order: Order) -> None:
        """
        An intent settles an order only when it succeeded, was issued to the
        order's owner, is not already linked to another order, and charged
        exactly the order total.
        """
        if not intent.succeeded:
            logger.warning(
                "Payment not completed",
                extra={"order_id": order.id, "payment_intent_id": intent.id, "payment_status": intent.status}
            )
            raise PaymentNotCompletedError(payment_status=intent.status)

        if intent.metadata.get("userId") != str(order.user_id):
            logger.warning(
                "Payment intent was issued to a different user",
                extra={"order_id": order.id, "payment_intent_id": intent.id}
            )
            raise PaymentNotCompletedError("Payment belongs to a different user", intent.status)

        if intent.order_id is not None and intent.order_id != order.id:
            raise PaymentNotCompletedError("Payment belongs to a different order", intent.status)

        linked = OrderService.find_by_payment_intent(db, intent.id)
        if linked is not None and linked.id != order.id:
            logger.warning(
                "Payment intent already settles another order",
                extra={"order_id": order.id, "linked_order_id": linked.id, "payment_intent_id": intent.id}
            )
            raise PaymentNotCompletedError("Payment belongs to a different order", intent.status)

        if round2(intent.amount) != round2(order.total):
            logger.warning(
                "Payment amount does not match order total",
                extra={"order_id": order.id, "payment_intent_id": intent.id,
                       "paid": str(intent.amount), "total": str(order.total)}
            )
            raise PaymentNotCompletedError("Payment amount does not match order total", intent.status)


    @staticmethod
    def _order_for_intent(db: Session, intent: PaymentIntent) -> Order | None:
        if intent.order_id is not None:
            order = db.query(Order).filter(Order.id == intent.order_id).one_or_none()
            owner = intent.metadata.get("userId")
            if order is not None and (owner is None or owner == str(order.user_id)):
                return order
        return OrderService.find_by_payment_intent(db, intent.id)
