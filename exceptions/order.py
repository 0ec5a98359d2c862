"""
Order-related exceptions.
"""

from .base import ShopException


class OrderException(ShopException):
    """Base exception for order-related errors."""
    pass


class OrderNotFoundException(OrderException):
    """Raised when order is not found or not owned by the requesting user."""

    def __init__(self, order_id: int):
        super().__init__(
            f"Order {order_id} not found",
            details={'order_id': order_id}
        )
        self.order_id = order_id


class InsufficientStockException(OrderException):
    """Raised when a product cannot cover the requested quantity."""

    def __init__(self, product_name: str, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for {product_name}: requested {requested}, available {available}",
            details={'product_name': product_name, 'requested': requested, 'available': available}
        )
        self.product_name = product_name
        self.requested = requested
        self.available = available


class InvalidOrderStateException(OrderException):
    """Raised when order is in invalid state for requested operation."""

    def __init__(self, order_id: int, current_state: str, required_state: str):
        super().__init__(
            f"Order {order_id} is in state '{current_state}', required '{required_state}'",
            details={'order_id': order_id, 'current_state': current_state, 'required_state': required_state}
        )
        self.order_id = order_id
        self.current_state = current_state
        self.required_state = required_state


class InvalidStateTransitionException(OrderException):
    """Raised when the order state machine rejects a status change."""

    def __init__(self, order_id: int, from_status: str, to_status: str):
        super().__init__(
            f"Order {order_id} cannot move from '{from_status}' to '{to_status}'",
            details={'order_id': order_id, 'from_status': from_status, 'to_status': to_status}
        )
        self.order_id = order_id
        self.from_status = from_status
        self.to_status = to_status


class OrderNumberGenerationException(OrderException):
    """Raised when no unused order number could be generated."""

    def __init__(self, attempts: int):
        super().__init__(
            f"Could not generate a unique order number after {attempts} attempts",
            details={'attempts': attempts}
        )
        self.attempts = attempts
