from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from models.enums import OrderStatus, PaymentStatus
from schemas.common import CamelModel, Money
from schemas.address_schemas import AddressResponse


class OrderItemRequest(CamelModel):
    product_id: int
    variant_id: Optional[int] = None
    quantity: int = Field(default=1, gt=0)


class CreateOrderRequest(CamelModel):
    items: list[OrderItemRequest] = Field(min_length=1)
    shipping_address_id: Optional[int] = None
    billing_address_id: Optional[int] = None
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator('notes')
    @classmethod
    def blank_notes_to_none(cls, value):
        if value is not None and not value.strip():
            return None
        return value


class UpdateOrderStatusRequest(CamelModel):
    status: OrderStatus


class _FromORM(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ProductSummary(_FromORM):
    id: int
    name: str
    slug: Optional[str] = None


class OrderItemResponse(_FromORM):
    id: int
    product_id: int
    variant_id: Optional[int] = None
    quantity: int
    price: Money = Field(validation_alias="price_at_time")
    subtotal: Money
    product: Optional[ProductSummary] = None


class OrderResponse(_FromORM):
    id: int
    order_number: str
    user_id: int
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: Optional[str] = None
    payment_intent_id: Optional[str] = None
    subtotal: Money
    tax: Money
    shipping: Money
    total: Money
    refunded_amount: Money = Decimal("0")
    notes: Optional[str] = None
    shipping_address_id: Optional[int] = None
    billing_address_id: Optional[int] = None
    shipping_address: Optional[AddressResponse] = None
    billing_address: Optional[AddressResponse] = None
    items: list[OrderItemResponse] = []
    created_at: datetime
    updated_at: datetime


def serialize_order(order) -> dict:
    return OrderResponse.model_validate(order).model_dump(mode="json", by_alias=True)
