"""
Error Handler Utility for HTTP adapters

Provides centralized error handling with:
- Consistent client-facing error bodies
- Automatic exception to status code mapping
- Logging for debugging

Usage in route handlers:
    from utils.error_handler import handle_service_error

    try:
        result = await SomeService.some_method(...)
    except ShopException as e:
        status_code, body = handle_service_error(e)
        raise HTTPException(status_code=status_code, detail=body)
"""

import logging

from exceptions import (
    ShopException,
    ValidationException,
    OrderNotFoundException,
    InvalidOrderStateException,
    InvalidStateTransitionException,
    InsufficientStockException,
    OrderNumberGenerationException,
    PaymentNotFoundException,
    InvalidPaymentAmountException,
    PaymentAlreadyProcessedException,
    InvalidPaymentStateException,
    PaymentInProgressException,
    RefundNotSupportedException,
    PaymentGatewayException,
    ProductNotFoundException,
    EmptyCartException,
    CartItemNotFoundException,
    UserNotFoundException,
    AddressNotFoundException,
)

# Exception type -> (HTTP status, machine-readable error code)
ERROR_MAPPING = {
    # Validation
    ValidationException: (400, "validation_error"),

    # Order exceptions
    OrderNotFoundException: (404, "order_not_found"),
    InvalidOrderStateException: (409, "order_invalid_state"),
    InvalidStateTransitionException: (409, "order_invalid_transition"),
    InsufficientStockException: (409, "insufficient_stock"),
    OrderNumberGenerationException: (503, "order_number_unavailable"),

    # Payment exceptions
    PaymentNotFoundException: (404, "payment_not_found"),
    InvalidPaymentAmountException: (400, "invalid_payment_amount"),
    PaymentAlreadyProcessedException: (409, "payment_already_processed"),
    InvalidPaymentStateException: (409, "payment_invalid_state"),
    PaymentInProgressException: (409, "payment_in_progress"),
    RefundNotSupportedException: (400, "refund_not_supported"),
    PaymentGatewayException: (502, "payment_gateway_error"),

    # Catalog / cart exceptions
    ProductNotFoundException: (404, "product_not_found"),
    EmptyCartException: (400, "empty_cart"),
    CartItemNotFoundException: (404, "cart_item_not_found"),

    # User / address exceptions
    UserNotFoundException: (404, "user_not_found"),
    AddressNotFoundException: (404, "address_not_found"),
}


def handle_service_error(exception: ShopException) -> tuple[int, dict]:
    """
    Convert service exception to an HTTP status code and JSON error body.

    Args:
        exception: The custom exception raised by a service

    Returns:
        Tuple of (status_code, {"error": code, "message": ..., **context})

    Example:
        try:
            order = await OrderService.get_order(123, user_id, session)
        except OrderNotFoundException as e:
            status_code, body = handle_service_error(e)  # (404, {...})
    """
    # Log the error for debugging
    logging.warning(f"Service error handled: {type(exception).__name__} - {str(exception)}")

    # Walk the MRO so subclasses inherit their parent's mapping
    mapping = next((ERROR_MAPPING[cls] for cls in type(exception).__mro__ if cls in ERROR_MAPPING), None)
    if mapping is None:
        logging.error(f"Unmapped exception type: {type(exception).__name__}")
        mapping = (400, "shop_error")

    status_code, error_code = mapping
    body = {"error": error_code, "message": str(exception)}

    # InsufficientStock carries what is left so the client can clamp
    if isinstance(exception, InsufficientStockException):
        body["product_name"] = exception.product_name
        body["requested"] = exception.requested
        body["available"] = exception.available
    if isinstance(exception, (InvalidOrderStateException, InvalidPaymentStateException)):
        body["current_state"] = exception.current_state
        body["required_state"] = exception.required_state

    return status_code, body


def handle_unexpected_error(exception: Exception) -> tuple[int, dict]:
    """
    Handle unexpected exceptions (non-ShopException).

    Note:
        Logs the full exception for debugging; the client only sees a generic message
    """
    logging.error(f"Unexpected error: {type(exception).__name__} - {str(exception)}", exc_info=True)
    return 500, {"error": "internal_error", "message": "An unexpected error occurred"}
