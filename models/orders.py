from core.database import Base
from sqlalchemy.orm import relationship
from sqlalchemy import (Column, Integer, String, Text, ForeignKey, Numeric, Enum)
from .mixins import CreatedAtMixin, UpdatedAtMixin
from .enums import OrderStatus, PaymentStatus

class Order(Base, CreatedAtMixin, UpdatedAtMixin):
    __tablename__ = "orders"

    #pk
    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(32), unique=True, nullable=False, index=True)

    #fk
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    shipping_address_id = Column(Integer, ForeignKey("addresses.id"))
    billing_address_id = Column(Integer, ForeignKey("addresses.id"))

    #relationships
    user = relationship("User", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", order_by="OrderItem.id")
    shipping_address = relationship("Address", foreign_keys=[shipping_address_id])
    billing_address = relationship("Address", foreign_keys=[billing_address_id])

    # total == subtotal + tax + shipping, all frozen at creation
    subtotal = Column(Numeric(10, 2), nullable=False)
    tax = Column(Numeric(10, 2), nullable=False)
    shipping = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(10, 2), nullable=False)

    notes = Column(Text)
    payment_method = Column(String)
    payment_intent_id = Column(String, unique=True, index=True)
    # running sum of refunds issued against payment_intent_id
    refunded_amount = Column(Numeric(10, 2), default=0, nullable=False)

    status = Column(Enum(OrderStatus, name="order_status"), default=OrderStatus.PENDING, nullable=False)
    payment_status = Column(Enum(PaymentStatus, name="payment_status"), default=PaymentStatus.PENDING, nullable=False)
