from typing import Annotated, Optional
from fastapi import APIRouter, Query, Request
from starlette import status
from schemas.order_schemas import serialize_order
from schemas.payment_schemas import (ConfirmPaymentRequest, CreateCustomerRequest,
                                     CreatePaymentIntentRequest, RefundRequest)
from services.payment_service import PaymentService
from middleware.rate_limiter import limiter
from utils.deps import db_dependency, user_dependency, gateway_dependency
from utils.logger import get_logger
from utils.responses import success_response

logger = get_logger(__name__)


router = APIRouter(
    prefix="/payments",
    tags=["payments"]
)

# Routes that call the gateway are plain `def`: FastAPI runs them in its
# threadpool, so the blocking Stripe client never stalls the event loop.


@router.post("/create-payment-intent", status_code=status.HTTP_200_OK)
@limiter.limit("20/minute")
def create_payment_intent(request: Request, body: CreatePaymentIntentRequest, user: user_dependency,
                          db: db_dependency, gateway: gateway_dependency):
    intent = PaymentService.create_payment_intent(body, user, db, gateway)

    return success_response(data={
        "clientSecret": intent.client_secret,
        "paymentIntentId": intent.id
    })


@router.get("/payment-intent/{payment_intent_id}", status_code=status.HTTP_200_OK)
@limiter.limit("60/minute")
def get_payment_intent(request: Request, payment_intent_id: str, user: user_dependency,
                       gateway: gateway_dependency):
    intent = PaymentService.get_payment_intent(payment_intent_id, user, gateway)
    return success_response(data={"paymentIntent": intent.to_dict()})


@router.post("/confirm-payment", status_code=status.HTTP_200_OK)
@limiter.limit("20/minute")
def confirm_payment(request: Request, body: ConfirmPaymentRequest, user: user_dependency,
                    db: db_dependency, gateway: gateway_dependency):
    """
    Server-side reconciliation: the only way an order becomes Paid from the
    client's side of the flow.
    """
    order, intent = PaymentService.confirm_payment(body, user.get("user_id"), db, gateway)

    return success_response(
        data={"order": serialize_order(order), "paymentIntent": intent.to_dict()},
        message="Payment confirmed successfully"
    )


@router.post("/refund", status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
def create_refund(request: Request, body: RefundRequest, user: user_dependency,
                  db: db_dependency, gateway: gateway_dependency):
    refund, order = PaymentService.refund(body, user, db, gateway)

    return success_response(
        data={"refund": refund.to_dict(), "order": serialize_order(order)},
        message="Refund created successfully"
    )


@router.post("/create-customer", status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
def create_customer(request: Request, body: CreateCustomerRequest, user: user_dependency,
                    db: db_dependency, gateway: gateway_dependency):
    customer = PaymentService.create_customer(body, user, db, gateway)

    return success_response(data={"customer": customer.to_dict()}, message="Customer created successfully")


@router.get("/payment-methods", status_code=status.HTTP_200_OK)
@limiter.limit("30/minute")
def list_payment_methods(request: Request, user: user_dependency, db: db_dependency, gateway: gateway_dependency,
                         customer_id: Annotated[Optional[str], Query(alias="customerId")] = None):
    """
    Saved cards of the caller's gateway customer. `customerId` defaults to
    the caller's own customer and may not name anyone else's.
    """
    methods = PaymentService.list_payment_methods(customer_id, user, db, gateway)
    return success_response(data={"paymentMethods": [method.to_dict() for method in methods]})


@router.post("/webhook", status_code=status.HTTP_200_OK)
@limiter.exempt
async def stripe_webhook(request: Request, db: db_dependency, gateway: gateway_dependency):
    """
    Stripe webhook receiver. Unauthenticated; trust comes from the
    Stripe-Signature header checked against the raw body.
    """
    payload = await request.body()
    event = PaymentService.handle_webhook(payload, request.headers.get("Stripe-Signature"), db, gateway)

    logger.info("Webhook received", extra={"event_id": event.id, "event_type": event.type})

    return {"success": True, "received": True}
