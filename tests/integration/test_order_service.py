import re
from decimal import Decimal
import pytest
from sqlalchemy.exc import IntegrityError
from core.exceptions import NotFoundError
from models.addresses import Address
from models.enums import AddressType, OrderStatus, PaymentStatus
from models.order_items import OrderItem
from models.orders import Order
from schemas.order_schemas import CreateOrderRequest
from services.order_service import OrderService


def order_request(*lines, **kwargs) -> CreateOrderRequest:
    return CreateOrderRequest(items=[dict(line) for line in lines], **kwargs)


def test_create_order_totals_with_free_shipping(session, customer, products):
    """[60, 50] -> 110.00 subtotal, 8.80 tax, free shipping, 118.80 total."""
    request = order_request(
        {"product_id": products["jacket"].id, "quantity": 1},
        {"product_id": products["jeans"].id, "quantity": 1},
    )

    order = OrderService.create_order(request, customer.id, session)

    assert order.subtotal == Decimal("110.00")
    assert order.tax == Decimal("8.80")
    assert order.shipping == Decimal("0.00")
    assert order.total == Decimal("118.80")
    assert order.total == order.subtotal + order.tax + order.shipping
    assert order.status == OrderStatus.PENDING
    assert order.payment_status == PaymentStatus.PENDING
    assert re.match(r"^YO-\d+-[A-Z0-9]{9}$", order.order_number)


def test_create_order_totals_with_flat_shipping(session, customer, products):
    """[40] -> 40.00 subtotal, 3.20 tax, 10 shipping, 53.20 total."""
    order = OrderService.create_order(
        order_request({"product_id": products["tee"].id, "quantity": 1}), customer.id, session
    )

    assert order.subtotal == Decimal("40.00")
    assert order.tax == Decimal("3.20")
    assert order.shipping == Decimal("10.00")
    assert order.total == Decimal("53.20")


def test_quantities_multiply_line_price(session, customer, products):
    order = OrderService.create_order(
        order_request({"product_id": products["tee"].id, "quantity": 3}), customer.id, session
    )

    item = order.items[0]
    assert item.price_at_time == Decimal("40.00")
    assert item.quantity == 3
    assert item.subtotal == Decimal("120.00")
    assert order.shipping == Decimal("0.00")


def test_prices_are_frozen_at_creation(session, customer, products):
    """Changing the catalog price later never touches an existing order."""
    order = OrderService.create_order(
        order_request({"product_id": products["jacket"].id, "quantity": 1}), customer.id, session
    )
    original_total = order.total

    products["jacket"].price = Decimal("999.00")
    session.commit()
    session.expire_all()

    stored = session.query(Order).filter(Order.id == order.id).one()
    assert stored.items[0].price_at_time == Decimal("60.00")
    assert stored.total == original_total


def test_unknown_product_creates_nothing(session, customer, products):
    request = order_request(
        {"product_id": products["jacket"].id, "quantity": 1},
        {"product_id": 9999, "quantity": 1},
    )

    with pytest.raises(NotFoundError) as exc_info:
        OrderService.create_order(request, customer.id, session)

    assert "9999" in exc_info.value.message
    assert session.query(Order).count() == 0
    assert session.query(OrderItem).count() == 0


def test_variant_must_belong_to_product(session, customer, products):
    tee_variant = products["tee"].variants[0]

    order = OrderService.create_order(
        order_request({"product_id": products["tee"].id, "variant_id": tee_variant.id}), customer.id, session
    )
    assert order.items[0].variant_id == tee_variant.id

    with pytest.raises(NotFoundError):
        OrderService.create_order(
            order_request({"product_id": products["jacket"].id, "variant_id": tee_variant.id}),
            customer.id, session
        )
    assert session.query(Order).count() == 1


def test_addresses_must_belong_to_user(session, customer, other_customer, products):
    foreign_address = Address(
        user_id=other_customer.id, type=AddressType.SHIPPING, first_name="O", last_name="C",
        address1="1 Main St", city="Springfield", state="IL", zip_code="62701", country="US"
    )
    session.add(foreign_address)
    session.commit()

    with pytest.raises(NotFoundError):
        OrderService.create_order(
            order_request({"product_id": products["tee"].id}, shipping_address_id=foreign_address.id),
            customer.id, session
        )
    assert session.query(Order).count() == 0


def test_get_order_is_scoped_to_owner(session, customer, other_customer, products):
    order = OrderService.create_order(
        order_request({"product_id": products["tee"].id}), customer.id, session
    )

    assert OrderService.get_order(session, order.id, customer.id).id == order.id
    with pytest.raises(NotFoundError):
        OrderService.get_order(session, order.id, other_customer.id)


def test_mark_paid_is_conditional(session, customer, products):
    order = OrderService.create_order(
        order_request({"product_id": products["tee"].id}), customer.id, session
    )

    assert OrderService.mark_paid(session, order, "pi_1") is True
    assert order.payment_status == PaymentStatus.PAID
    assert order.status == OrderStatus.CONFIRMED
    assert order.payment_method == "stripe"

    assert OrderService.mark_paid(session, order, "pi_1") is False
    assert order.payment_status == PaymentStatus.PAID


def test_mark_paid_keeps_later_fulfillment_status(session, customer, products):
    """A payment landing late does not drag a processing order back to confirmed."""
    order = OrderService.create_order(
        order_request({"product_id": products["tee"].id}), customer.id, session
    )
    order.status = OrderStatus.CONFIRMED
    session.commit()
    OrderService.update_status(session, order.id, OrderStatus.PROCESSING)

    OrderService.mark_paid(session, order, "pi_2")

    assert order.status == OrderStatus.PROCESSING
    assert order.payment_status == PaymentStatus.PAID


def test_list_orders_paginates_newest_first(session, customer, products):
    created = [
        OrderService.create_order(order_request({"product_id": products["tee"].id}), customer.id, session)
        for _ in range(3)
    ]

    first_page, total = OrderService.list_orders(session, customer.id, page=1, limit=2)
    second_page, _ = OrderService.list_orders(session, customer.id, page=2, limit=2)

    assert total == 3
    assert [order.id for order in first_page] == [created[2].id, created[1].id]
    assert [order.id for order in second_page] == [created[0].id]


def test_payment_intent_links_at_most_one_order(session, customer, products):
    request = order_request({"product_id": products["tee"].id})
    first = OrderService.create_order(request, customer.id, session)
    second = OrderService.create_order(request, customer.id, session)
    OrderService.attach_payment_intent(session, first, "pi_shared")

    with pytest.raises(IntegrityError):
        OrderService.attach_payment_intent(session, second, "pi_shared")
    session.rollback()

    assert OrderService.find_by_payment_intent(session, "pi_shared").id == first.id


def test_record_refund_closes_order_once_total_is_returned(session, customer, products):
    order = OrderService.create_order(
        order_request({"product_id": products["tee"].id}), customer.id, session
    )
    OrderService.mark_paid(session, order, "pi_refunds")

    assert OrderService.ensure_refundable(order, Decimal("13.20")) is False
    assert OrderService.record_refund(session, order, Decimal("13.20")) is False
    assert OrderService.refundable_amount(order) == Decimal("40.00")

    assert OrderService.ensure_refundable(order, Decimal("40.00")) is True
    assert OrderService.record_refund(session, order, Decimal("40.00")) is True
    assert order.status == OrderStatus.REFUNDED
    assert order.payment_status == PaymentStatus.REFUNDED
