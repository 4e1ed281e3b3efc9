from decimal import Decimal
from typing import Optional

import stripe

from core.exceptions import GatewayError, WebhookSignatureError
from services.payment_gateway import Customer, GatewayEvent, PaymentGateway, PaymentIntent, PaymentMethod, Refund
from utils.logger import get_logger
from utils.money import from_minor_units, to_minor_units

logger = get_logger(__name__)

# Failures surface to the caller; nothing is retried behind their back
stripe.max_network_retries = 0


def _metadata(obj) -> dict[str, str]:
    metadata = getattr(obj, "metadata", None)
    if not metadata:
        return {}
    return {key: str(value) for key, value in metadata.to_dict().items()}


def _to_payment_intent(obj) -> PaymentIntent:
    return PaymentIntent(
        id=obj.id,
        status=obj.status,
        amount=from_minor_units(obj.amount),
        currency=obj.currency,
        client_secret=getattr(obj, "client_secret", None),
        metadata=_metadata(obj),
    )


def _to_payment_method(obj) -> PaymentMethod:
    card = getattr(obj, "card", None)
    return PaymentMethod(
        id=obj.id,
        brand=getattr(card, "brand", None),
        last4=getattr(card, "last4", None),
        exp_month=getattr(card, "exp_month", None),
        exp_year=getattr(card, "exp_year", None),
    )


class StripeService(PaymentGateway):
    """
    Stripe adapter for the payment gateway boundary.

    Every SDK failure (network, authentication, invalid request, card error)
    is logged with Stripe's own message and re-raised as GatewayError, whose
    user-facing message never leaks processor internals.
    """

    def __init__(self, api_key: str, webhook_secret: str):
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    def create_payment_intent(self, amount: Decimal, currency: str, metadata: dict[str, str]) -> PaymentIntent:
        try:
            intent = stripe.PaymentIntent.create(
                amount=to_minor_units(amount),
                currency=currency,
                metadata=metadata,
                automatic_payment_methods={"enabled": True},
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            raise self._gateway_error("create_payment_intent", e)

        logger.info(
            "Payment intent created",
            extra={"payment_intent_id": intent.id, "amount": str(amount), "currency": currency}
        )
        return _to_payment_intent(intent)

    def get_payment_intent(self, intent_id: str) -> PaymentIntent:
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id, api_key=self.api_key)
        except stripe.StripeError as e:
            raise self._gateway_error("get_payment_intent", e, payment_intent_id=intent_id)

        return _to_payment_intent(intent)

    def create_refund(self, intent_id: str, amount: Optional[Decimal], reason: str) -> Refund:
        params = {"payment_intent": intent_id, "reason": reason}
        if amount is not None:
            params["amount"] = to_minor_units(amount)

        try:
            refund = stripe.Refund.create(api_key=self.api_key, **params)
        except stripe.StripeError as e:
            raise self._gateway_error("create_refund", e, payment_intent_id=intent_id)

        logger.info(
            "Refund created",
            extra={"refund_id": refund.id, "payment_intent_id": intent_id, "reason": reason}
        )
        return Refund(
            id=refund.id,
            payment_intent_id=intent_id,
            amount=from_minor_units(refund.amount),
            status=refund.status,
            reason=refund.reason,
        )

    def verify_webhook_signature(self, payload: bytes, signature: str) -> GatewayEvent:
        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError as e:
            raise WebhookSignatureError(f"Malformed payload: {e}")
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(str(e))

        intent = None
        data_object = event.data.object
        if getattr(data_object, "object", None) == "payment_intent":
            intent = _to_payment_intent(data_object)

        return GatewayEvent(id=event.id, type=event.type, payment_intent=intent)

    def create_customer(self, email: str, name: Optional[str], metadata: dict[str, str]) -> Customer:
        try:
            customer = stripe.Customer.create(email=email, name=name, metadata=metadata, api_key=self.api_key)
        except stripe.StripeError as e:
            raise self._gateway_error("create_customer", e)

        logger.info("Stripe customer created", extra={"customer_id": customer.id})
        return Customer(
            id=customer.id,
            email=getattr(customer, "email", None),
            name=getattr(customer, "name", None),
            metadata=_metadata(customer),
        )

    def list_payment_methods(self, customer_id: str) -> list[PaymentMethod]:
        try:
            methods = stripe.PaymentMethod.list(customer=customer_id, type="card", api_key=self.api_key)
        except stripe.StripeError as e:
            raise self._gateway_error("list_payment_methods", e, customer_id=customer_id)

        return [_to_payment_method(method) for method in methods.data]

    @staticmethod
    def _gateway_error(operation: str, error: Exception, **context) -> GatewayError:
        logger.error(
            f"Stripe {operation} failed: {error}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "stripe_code": getattr(error, "code", None),
                **context
            }
        )
        return GatewayError(detail=str(error))
