from decimal import Decimal
import pytest
from fastapi import HTTPException
from core.exceptions import (GatewayError, InvalidStatusTransition, NotFoundError,
                             OrderStateConflict, PaymentNotCompletedError, WebhookSignatureError)
from models.enums import OrderStatus, PaymentStatus
from models.orders import Order
from schemas.order_schemas import CreateOrderRequest
from schemas.payment_schemas import ConfirmPaymentRequest, CreatePaymentIntentRequest, RefundRequest
from services.order_service import OrderService
from services.payment_service import PaymentService
from tests.fakes import VALID_SIGNATURE, payment_intent_event


@pytest.fixture
def order(session, customer, products):
    """A Pending order for the 40.00 tee: total 53.20."""
    request = CreateOrderRequest(items=[{"product_id": products["tee"].id, "quantity": 1}])
    return OrderService.create_order(request, customer.id, session)


@pytest.fixture
def intent(session, order, user_context, gateway):
    request = CreatePaymentIntentRequest(amount=order.total, order_id=order.id)
    return PaymentService.create_payment_intent(request, user_context, session, gateway)


def confirm(session, order, intent, gateway, user_id):
    request = ConfirmPaymentRequest(payment_intent_id=intent.id, order_id=order.id)
    return PaymentService.confirm_payment(request, user_id, session, gateway)


def test_create_payment_intent_links_order(session, order, intent, gateway):
    call = gateway.calls[0]

    assert call["amount"] == Decimal("53.20")
    assert call["currency"] == "usd"
    assert call["metadata"]["orderId"] == str(order.id)
    assert intent.client_secret
    assert order.payment_intent_id == intent.id


def test_create_payment_intent_for_foreign_order(session, order, other_customer, gateway):
    user = {"email": other_customer.email, "user_id": other_customer.id, "user_role": "customer"}
    request = CreatePaymentIntentRequest(amount=Decimal("53.20"), order_id=order.id)

    with pytest.raises(NotFoundError):
        PaymentService.create_payment_intent(request, user, session, gateway)
    assert gateway.calls == []


def test_confirm_payment_marks_order_paid(session, customer, order, intent, gateway):
    gateway.set_status(intent.id, "succeeded")

    confirmed, fetched = confirm(session, order, intent, gateway, customer.id)

    assert fetched.succeeded
    assert confirmed.payment_status == PaymentStatus.PAID
    assert confirmed.status == OrderStatus.CONFIRMED
    assert confirmed.payment_method == "stripe"
    assert confirmed.payment_intent_id == intent.id


def test_confirm_payment_twice_is_idempotent(session, customer, order, intent, gateway):
    gateway.set_status(intent.id, "succeeded")

    confirm(session, order, intent, gateway, customer.id)
    first_updated_at = order.updated_at
    confirmed, _ = confirm(session, order, intent, gateway, customer.id)

    assert confirmed.payment_status == PaymentStatus.PAID
    assert confirmed.status == OrderStatus.CONFIRMED
    assert confirmed.updated_at == first_updated_at


@pytest.mark.parametrize("gateway_status", ["requires_payment_method", "processing", "canceled"])
def test_unsucceeded_payment_leaves_order_untouched(session, customer, order, intent, gateway, gateway_status):
    gateway.set_status(intent.id, gateway_status)

    with pytest.raises(PaymentNotCompletedError) as exc_info:
        confirm(session, order, intent, gateway, customer.id)

    session.refresh(order)
    assert exc_info.value.payment_status == gateway_status
    assert order.payment_status == PaymentStatus.PENDING
    assert order.status == OrderStatus.PENDING


def test_confirm_rejects_intent_for_a_different_amount(session, customer, order, gateway):
    cheap = gateway.add_intent(Decimal("1.00"), userId=str(customer.id))

    with pytest.raises(PaymentNotCompletedError):
        confirm(session, order, cheap, gateway, customer.id)

    session.refresh(order)
    assert order.payment_status == PaymentStatus.PENDING


def test_confirm_requires_order_owner(session, order, intent, other_customer, gateway):
    gateway.set_status(intent.id, "succeeded")

    with pytest.raises(NotFoundError):
        confirm(session, order, intent, gateway, other_customer.id)


def test_gateway_failure_does_not_touch_order(session, customer, order, intent, gateway):
    gateway.fail("Your card was declined.")

    with pytest.raises(GatewayError) as exc_info:
        confirm(session, order, intent, gateway, customer.id)

    session.refresh(order)
    assert "declined" not in exc_info.value.message
    assert order.payment_status == PaymentStatus.PENDING


def test_confirm_cancelled_order_is_rejected(session, customer, order, intent, gateway):
    gateway.set_status(intent.id, "succeeded")
    OrderService.update_status(session, order.id, OrderStatus.CANCELLED)

    with pytest.raises(InvalidStatusTransition):
        confirm(session, order, intent, gateway, customer.id)

    session.refresh(order)
    assert order.payment_status == PaymentStatus.PENDING


def test_full_refund_marks_order_refunded(session, customer, order, intent, gateway, user_context):
    gateway.set_status(intent.id, "succeeded")
    confirm(session, order, intent, gateway, customer.id)

    refund, refunded = PaymentService.refund(
        RefundRequest(payment_intent_id=intent.id), user_context, session, gateway
    )

    assert refund.amount == Decimal("53.20")
    assert refunded.payment_status == PaymentStatus.REFUNDED
    assert refunded.status == OrderStatus.REFUNDED

    with pytest.raises(OrderStateConflict):
        PaymentService.refund(RefundRequest(payment_intent_id=intent.id), user_context, session, gateway)


def test_refund_requires_paid_order(session, order, intent, gateway, user_context):
    with pytest.raises(OrderStateConflict):
        PaymentService.refund(RefundRequest(payment_intent_id=intent.id), user_context, session, gateway)
    assert gateway.refunds == []


def test_webhook_success_reconciles_order(session, order, intent, gateway):
    payload = payment_intent_event(
        "payment_intent.succeeded", intent.id, 5320, "succeeded", intent.metadata
    )

    PaymentService.handle_webhook(payload, VALID_SIGNATURE, session, gateway)

    session.refresh(order)
    assert order.payment_status == PaymentStatus.PAID
    assert order.status == OrderStatus.CONFIRMED


def test_webhook_and_confirm_together_apply_once(session, customer, order, intent, gateway):
    gateway.set_status(intent.id, "succeeded")
    payload = payment_intent_event("payment_intent.succeeded", intent.id, 5320, "succeeded", intent.metadata)

    PaymentService.handle_webhook(payload, VALID_SIGNATURE, session, gateway)
    confirmed, _ = confirm(session, order, intent, gateway, customer.id)

    assert confirmed.payment_status == PaymentStatus.PAID
    assert confirmed.status == OrderStatus.CONFIRMED


def test_webhook_failure_marks_payment_failed(session, order, intent, gateway):
    payload = payment_intent_event("payment_intent.payment_failed", intent.id, 5320, "requires_payment_method")

    PaymentService.handle_webhook(payload, VALID_SIGNATURE, session, gateway)

    session.refresh(order)
    assert order.payment_status == PaymentStatus.FAILED
    assert order.status == OrderStatus.PENDING


def test_webhook_ignores_unknown_event_types(session, order, intent, gateway):
    payload = payment_intent_event("payment_intent.created", intent.id, 5320, "requires_payment_method")

    event = PaymentService.handle_webhook(payload, VALID_SIGNATURE, session, gateway)

    session.refresh(order)
    assert event.type == "payment_intent.created"
    assert order.payment_status == PaymentStatus.PENDING


def test_webhook_rejects_bad_signature(session, order, intent, gateway):
    payload = payment_intent_event("payment_intent.succeeded", intent.id, 5320, "succeeded")

    with pytest.raises(WebhookSignatureError):
        PaymentService.handle_webhook(payload, "t=1,v1=forged", session, gateway)

    with pytest.raises(WebhookSignatureError):
        PaymentService.handle_webhook(payload, None, session, gateway)

    session.refresh(order)
    assert order.payment_status == PaymentStatus.PENDING


def test_create_payment_intent_must_match_order_total(session, order, user_context, gateway):
    request = CreatePaymentIntentRequest(amount=Decimal("10.00"), order_id=order.id)

    with pytest.raises(HTTPException) as exc_info:
        PaymentService.create_payment_intent(request, user_context, session, gateway)

    assert exc_info.value.status_code == 400
    assert gateway.calls == []
    assert order.payment_intent_id is None


def test_one_charge_settles_only_one_order(session, customer, other_customer, products, gateway):
    request = CreateOrderRequest(items=[{"product_id": products["tee"].id}])
    first = OrderService.create_order(request, customer.id, session)
    second = OrderService.create_order(request, customer.id, session)
    foreign = OrderService.create_order(request, other_customer.id, session)
    charge = gateway.add_intent(Decimal("53.20"), userId=str(customer.id))

    confirm(session, first, charge, gateway, customer.id)
    with pytest.raises(PaymentNotCompletedError):
        confirm(session, second, charge, gateway, customer.id)
    with pytest.raises(PaymentNotCompletedError):
        confirm(session, foreign, charge, gateway, other_customer.id)

    paid = session.query(Order).filter(Order.payment_status == PaymentStatus.PAID).all()
    assert [paid_order.id for paid_order in paid] == [first.id]


def test_intent_without_owner_does_not_settle(session, customer, order, gateway):
    anonymous = gateway.add_intent(Decimal("53.20"))

    with pytest.raises(PaymentNotCompletedError):
        confirm(session, order, anonymous, gateway, customer.id)

    session.refresh(order)
    assert order.payment_status == PaymentStatus.PENDING


def test_webhook_for_another_users_intent_is_not_applied(session, order, intent, gateway):
    payload = payment_intent_event(
        "payment_intent.succeeded", intent.id, 5320, "succeeded",
        {"orderId": str(order.id), "userId": "999"}
    )

    PaymentService.handle_webhook(payload, VALID_SIGNATURE, session, gateway)

    session.refresh(order)
    assert order.payment_status == PaymentStatus.PENDING


def test_partial_refunds_add_up_to_a_full_refund(session, customer, order, intent, gateway, user_context):
    gateway.set_status(intent.id, "succeeded")
    confirm(session, order, intent, gateway, customer.id)

    _, after_first = PaymentService.refund(
        RefundRequest(payment_intent_id=intent.id, amount=Decimal("20.00")), user_context, session, gateway
    )
    assert after_first.refunded_amount == Decimal("20.00")
    assert after_first.payment_status == PaymentStatus.PAID

    refund, after_second = PaymentService.refund(
        RefundRequest(payment_intent_id=intent.id), user_context, session, gateway
    )
    assert refund.amount == Decimal("33.20")
    assert gateway.calls[-1]["amount"] == Decimal("33.20")
    assert after_second.refunded_amount == Decimal("53.20")
    assert after_second.payment_status == PaymentStatus.REFUNDED
    assert after_second.status == OrderStatus.REFUNDED


def test_refund_beyond_remaining_amount_is_rejected(session, customer, order, intent, gateway, user_context):
    gateway.set_status(intent.id, "succeeded")
    confirm(session, order, intent, gateway, customer.id)
    PaymentService.refund(
        RefundRequest(payment_intent_id=intent.id, amount=Decimal("50.00")), user_context, session, gateway
    )

    with pytest.raises(HTTPException) as exc_info:
        PaymentService.refund(
            RefundRequest(payment_intent_id=intent.id, amount=Decimal("10.00")), user_context, session, gateway
        )

    assert exc_info.value.status_code == 400
    assert len(gateway.refunds) == 1
    assert order.refunded_amount == Decimal("50.00")
    assert order.payment_status == PaymentStatus.PAID
