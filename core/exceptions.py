"""
Application error types.

Each error carries the HTTP status it maps to and a short machine-readable
code. main.py turns them into the standard response envelope.
"""

from typing import Any, Optional


class AppError(Exception):
    status_code: int = 500
    error: str = "internal_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context


class NotFoundError(AppError):
    status_code = 404
    error = "not_found"


class PaymentNotCompletedError(AppError):
    """
    The gateway answered, but the payment is not in a state that lets the
    order be marked paid.
    """
    status_code = 400
    error = "payment_not_completed"

    def __init__(self, message: str = "Payment not completed", payment_status: Optional[str] = None):
        super().__init__(message, status=payment_status)
        self.payment_status = payment_status


class GatewayError(AppError):
    """
    The payment gateway could not be reached or refused the call.

    `message` is safe to show to users. `detail` holds the processor's own
    explanation and is only ever logged.
    """
    status_code = 502
    error = "gateway_error"

    def __init__(self, detail: str, message: str = "Payment failed, please try again."):
        super().__init__(message)
        self.detail = detail


class WebhookSignatureError(AppError):
    status_code = 400
    error = "invalid_signature"

    def __init__(self, detail: str, message: str = "Invalid signature"):
        super().__init__(message)
        self.detail = detail


class InvalidStatusTransition(AppError):
    status_code = 409
    error = "invalid_status_transition"

    def __init__(self, field: str, current: str, target: str):
        super().__init__(
            f"Cannot change {field} from {current} to {target}",
            field=field, current=current, target=target
        )
        self.field = field
        self.current = current
        self.target = target


class OrderStateConflict(AppError):
    """The order is in a state that does not allow the requested payment action."""
    status_code = 409
    error = "order_state_conflict"
