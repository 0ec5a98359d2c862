"""
Payment-related exceptions.
"""

from .base import ShopException


class PaymentException(ShopException):
    """Base exception for payment-related errors."""
    pass


class PaymentNotFoundException(PaymentException):
    """Raised when payment is not found."""

    def __init__(self, payment_id: int):
        super().__init__(
            f"Payment {payment_id} not found",
            details={'payment_id': payment_id}
        )
        self.payment_id = payment_id


class InvalidPaymentAmountException(PaymentException):
    """Raised when a refund amount is out of range."""

    def __init__(self, amount: float, reason: str):
        super().__init__(
            f"Invalid payment amount {amount}: {reason}",
            details={'amount': amount, 'reason': reason}
        )
        self.amount = amount
        self.reason = reason


class PaymentAlreadyProcessedException(PaymentException):
    """Raised when trying to pay an order that is already paid."""

    def __init__(self, order_id: int):
        super().__init__(
            f"Order {order_id} has already been paid",
            details={'order_id': order_id}
        )
        self.order_id = order_id


class InvalidPaymentStateException(PaymentException):
    """Raised when a payment is in the wrong state for the operation."""

    def __init__(self, payment_id: int, current_state: str, required_state: str):
        super().__init__(
            f"Payment {payment_id} is in state '{current_state}', required '{required_state}'",
            details={'payment_id': payment_id, 'current_state': current_state, 'required_state': required_state}
        )
        self.payment_id = payment_id
        self.current_state = current_state
        self.required_state = required_state


class PaymentInProgressException(PaymentException):
    """Raised when another payment attempt for the order is still waiting on the gateway."""

    def __init__(self, order_id: int, payment_id: int):
        super().__init__(
            f"Payment {payment_id} for order {order_id} is still being processed",
            details={'order_id': order_id, 'payment_id': payment_id}
        )
        self.order_id = order_id
        self.payment_id = payment_id


class RefundNotSupportedException(PaymentException):
    """Raised when the payment method has no refund capability."""

    def __init__(self, method: str):
        super().__init__(
            f"Refunds are not supported for payment method '{method}'",
            details={'method': method}
        )
        self.method = method


class PaymentGatewayException(PaymentException):
    """
    Raised by the gateway client on transport errors and non-2xx responses.

    Settlement converts it into a failed outcome; it never escapes process_payment.
    """

    def __init__(self, reason: str, status_code: int | None = None):
        super().__init__(
            f"Payment gateway error: {reason}",
            details={'reason': reason, 'status_code': status_code}
        )
        self.reason = reason
        self.status_code = status_code
