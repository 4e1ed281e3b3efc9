from decimal import Decimal
from typing import Optional
from fastapi import HTTPException
from sqlalchemy.orm import Session
from starlette import status
from sqlalchemy.sql import func
from core.config import settings
from core.exceptions import NotFoundError, InvalidStatusTransition
from models.addresses import Address
from models.enums import OrderStatus, PaymentStatus
from models.order_items import OrderItem
from models.orders import Order
from models.product_variants import ProductVariant
from models.products import Product
from schemas.order_schemas import CreateOrderRequest
from services.order_state import ensure_order_transition, ensure_payment_transition
from utils.logger import get_logger
from utils.money import compute_order_totals, round2
from utils.order_number import generate_order_number

logger = get_logger(__name__)

# Orders in these states can no longer be confirmed by a payment
CLOSED_STATUSES = (OrderStatus.CANCELLED, OrderStatus.REFUNDED)


class OrderService:

    @staticmethod
    def create_order(request: CreateOrderRequest, user_id: int, db: Session) -> Order:
        """
        Turns a cart snapshot into a Pending/Pending order.

        Flow:
        1. Check referenced addresses belong to the user
        2. Price every line from the catalog as it is right now
        3. Compute subtotal, tax, shipping and total
        4. Persist order and items in a single commit

        Any unknown product, variant or address aborts before anything is
        written, so a failed request never leaves a partial order behind.
        """
        for address_id in (request.shipping_address_id, request.billing_address_id):
            if address_id is not None:
                OrderService._get_user_address(db, address_id, user_id)

        product_ids = {item.product_id for item in request.items}
        products = {
            product.id: product
            for product in db.query(Product).filter(Product.id.in_(product_ids)).all()
        }

        order_items = []
        for item in request.items:
            product = products.get(item.product_id)
            if product is None:
                logger.warning(
                    "Order rejected - unknown product",
                    extra={"user_id": user_id, "product_id": item.product_id}
                )
                raise NotFoundError(f"Product with ID {item.product_id} not found")

            if item.variant_id is not None:
                variant = db.query(ProductVariant).filter(
                    ProductVariant.id == item.variant_id,
                    ProductVariant.product_id == product.id,
                    ProductVariant.is_active == True
                ).first()
                if variant is None:
                    raise NotFoundError(
                        f"Variant with ID {item.variant_id} not found for product {product.id}"
                    )

            price = round2(product.price)
            order_items.append(OrderItem(
                product_id=product.id,
                variant_id=item.variant_id,
                quantity=item.quantity,
                price_at_time=price,
                subtotal=round2(price * item.quantity)
            ))

        totals = compute_order_totals(
            (order_item.subtotal for order_item in order_items),
            tax_rate=settings.TAX_RATE,
            free_shipping_threshold=settings.FREE_SHIPPING_THRESHOLD,
            flat_shipping_fee=settings.FLAT_SHIPPING_FEE
        )

        order = Order(
            order_number=generate_order_number(settings.ORDER_NUMBER_PREFIX),
            user_id=user_id,
            subtotal=totals.subtotal,
            tax=totals.tax,
            shipping=totals.shipping,
            total=totals.total,
            shipping_address_id=request.shipping_address_id,
            billing_address_id=request.billing_address_id,
            notes=request.notes,
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            items=order_items
        )

        db.add(order)
        db.commit()
        db.refresh(order)

        logger.info(
            "Order created",
            extra={
                "user_id": user_id,
                "order_id": order.id,
                "order_number": order.order_number,
                "total": str(order.total),
                "item_count": len(order_items)
            }
        )
        return order


    @staticmethod
    def get_order(db: Session, order_id: int, user_id: int) -> Order:
        order = db.query(Order).filter(Order.id == order_id, Order.user_id == user_id).one_or_none()
        if order is None:
            raise NotFoundError("Order not found")
        return order


    @staticmethod
    def list_orders(db: Session, user_id: int, page: int, limit: int,
                    status: Optional[OrderStatus] = None) -> tuple[list[Order], int]:
        query = db.query(Order).filter(Order.user_id == user_id)
        if status is not None:
            query = query.filter(Order.status == status)

        total = query.count()
        orders = (
            query.order_by(Order.created_at.desc(), Order.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return orders, total


    @staticmethod
    def find_by_payment_intent(db: Session, payment_intent_id: str,
                               user_id: Optional[int] = None) -> Order | None:
        query = db.query(Order).filter(Order.payment_intent_id == payment_intent_id)
        if user_id is not None:
            query = query.filter(Order.user_id == user_id)
        return query.first()


    @staticmethod
    def attach_payment_intent(db: Session, order: Order, payment_intent_id: str) -> None:
        order.payment_intent_id = payment_intent_id
        db.commit()


    @staticmethod
    def mark_paid(db: Session, order: Order, payment_intent_id: str) -> bool:
        """
        Moves an order to Paid (and Pending orders to Confirmed).

        The write is conditional on the order not already being Paid, so the
        synchronous confirmation and the webhook can both run it, in any
        order or at the same time, without clobbering each other.

        Returns True when this call performed the transition, False when the
        order was already paid.
        """
        if order.payment_status == PaymentStatus.PAID:
            return False

        ensure_payment_transition(order.payment_status, PaymentStatus.PAID)
        if order.status in CLOSED_STATUSES:
            raise InvalidStatusTransition("status", order.status.value, OrderStatus.CONFIRMED.value)

        values = {
            Order.payment_status: PaymentStatus.PAID,
            Order.payment_method: "stripe",
            Order.payment_intent_id: payment_intent_id,
            Order.updated_at: func.now()
        }
        if order.status == OrderStatus.PENDING:
            values[Order.status] = OrderStatus.CONFIRMED

        updated = db.query(Order).filter(
            Order.id == order.id,
            Order.payment_status != PaymentStatus.PAID
        ).update(values, synchronize_session=False)
        db.commit()
        db.refresh(order)

        if updated:
            logger.info(
                "Order marked as paid",
                extra={"order_id": order.id, "payment_intent_id": payment_intent_id}
            )
        return bool(updated)


    @staticmethod
    def mark_payment_failed(db: Session, order: Order) -> bool:
        updated = db.query(Order).filter(
            Order.id == order.id,
            Order.payment_status == PaymentStatus.PENDING
        ).update({
            Order.payment_status: PaymentStatus.FAILED,
            Order.updated_at: func.now()
        }, synchronize_session=False)
        db.commit()
        db.refresh(order)
        return bool(updated)


    @staticmethod
    def refundable_amount(order: Order) -> Decimal:
        return round2(order.total) - round2(order.refunded_amount or 0)


    @staticmethod
    def ensure_refundable(order: Order, amount: Decimal) -> bool:
        """
        Checks a refund of `amount` against what is left on the order.

        Returns True when the refund would settle the remainder, in which
        case the order must also be able to move to Refunded/Refunded.
        """
        remaining = OrderService.refundable_amount(order)
        if round2(amount) > remaining:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                detail=f"Refund amount exceeds refundable amount ({remaining})")

        completes = round2(amount) == remaining
        if completes:
            ensure_payment_transition(order.payment_status, PaymentStatus.REFUNDED)
            ensure_order_transition(order.status, OrderStatus.REFUNDED)
        return completes


    @staticmethod
    def record_refund(db: Session, order: Order, amount: Decimal) -> bool:
        """
        Adds an issued refund to the order's running total and closes the
        order once everything has been given back.

        Returns True when the order is now fully refunded.
        """
        order.refunded_amount = round2(order.refunded_amount or 0) + round2(amount)
        fully_refunded = order.refunded_amount >= round2(order.total)
        if fully_refunded:
            order.payment_status = PaymentStatus.REFUNDED
            order.status = OrderStatus.REFUNDED

        db.commit()
        db.refresh(order)
        return fully_refunded


    @staticmethod
    def update_status(db: Session, order_id: int, new_status: OrderStatus) -> Order:
        order = db.query(Order).filter(Order.id == order_id).one_or_none()
        if order is None:
            raise NotFoundError("Order not found")

        ensure_order_transition(order.status, new_status)

        previous = order.status
        order.status = new_status
        db.commit()
        db.refresh(order)

        logger.info(
            "Order status updated",
            extra={"order_id": order.id, "from": previous.value, "to": new_status.value}
        )
        return order


    @staticmethod
    def _get_user_address(db: Session, address_id: int, user_id: int) -> Address:
        address = db.query(Address).filter(Address.id == address_id, Address.user_id == user_id).one_or_none()
        if address is None:
            raise NotFoundError(f"Address with ID {address_id} not found")
        return address
