"""
Payment gateway boundary.

The order workflow only talks to the gateway through `PaymentGateway`.
Amounts crossing this boundary are Decimal currency units; adapters convert
to the processor's minor units on their side (see utils.money).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional


SUCCEEDED = "succeeded"


@dataclass(frozen=True)
class PaymentIntent:
    id: str
    status: str
    amount: Decimal
    currency: str
    client_secret: Optional[str] = None
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCEEDED

    @property
    def order_id(self) -> Optional[int]:
        raw = self.metadata.get("orderId")
        return int(raw) if raw and raw.isdigit() else None

    def to_dict(self) -> dict[str, Any]:
        """Public view of the intent; the client secret is never echoed."""
        return {
            "id": self.id,
            "status": self.status,
            "amount": float(self.amount),
            "currency": self.currency,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class Refund:
    id: str
    payment_intent_id: str
    amount: Decimal
    status: str
    reason: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "paymentIntentId": self.payment_intent_id,
            "amount": float(self.amount),
            "status": self.status,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class Customer:
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    metadata: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class PaymentMethod:
    """A saved card. Only display details ever leave the gateway."""
    id: str
    brand: Optional[str] = None
    last4: Optional[str] = None
    exp_month: Optional[int] = None
    exp_year: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "brand": self.brand,
            "last4": self.last4,
            "expMonth": self.exp_month,
            "expYear": self.exp_year,
        }


@dataclass(frozen=True)
class GatewayEvent:
    """A webhook event whose signature has already been verified."""
    id: str
    type: str
    payment_intent: Optional[PaymentIntent] = None


class PaymentGateway(ABC):

    @abstractmethod
    def create_payment_intent(self, amount: Decimal, currency: str, metadata: dict[str, str]) -> PaymentIntent:
        """Ask the gateway for a new intent. The result carries the client secret."""

    @abstractmethod
    def get_payment_intent(self, intent_id: str) -> PaymentIntent:
        """Fetch the gateway's current view of an intent."""

    @abstractmethod
    def create_refund(self, intent_id: str, amount: Optional[Decimal], reason: str) -> Refund:
        """Refund `amount` of a captured intent, or all of it when `amount` is None."""

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes, signature: str) -> GatewayEvent:
        """
        Check `signature` against the raw request body and parse the event.

        Raises WebhookSignatureError when the payload was not signed by the
        gateway.
        """

    @abstractmethod
    def create_customer(self, email: str, name: Optional[str], metadata: dict[str, str]) -> Customer:
        """Register a gateway customer that saved cards can be attached to."""

    @abstractmethod
    def list_payment_methods(self, customer_id: str) -> list[PaymentMethod]:
        """Cards saved for `customer_id`."""
