from decimal import Decimal
from typing import Literal, Optional
from pydantic import EmailStr, Field, field_validator
from schemas.common import CamelModel


class CreatePaymentIntentRequest(CamelModel):
    amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    currency: Optional[str] = None
    order_id: Optional[int] = None

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, value):
        if value is None:
            return value
        value = value.strip().lower()
        if len(value) != 3 or not value.isalpha():
            raise ValueError('Currency must be a 3-letter ISO code')
        return value


class ConfirmPaymentRequest(CamelModel):
    payment_intent_id: str = Field(min_length=1)
    order_id: int


class RefundRequest(CamelModel):
    payment_intent_id: str = Field(min_length=1)
    amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    reason: Literal["requested_by_customer", "duplicate", "fraudulent"] = "requested_by_customer"


class CreateCustomerRequest(CamelModel):
    """Both fields fall back to the account's own email and name."""
    email: Optional[EmailStr] = None
    name: Optional[str] = Field(default=None, max_length=200)
