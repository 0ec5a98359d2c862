"""
Custom exceptions for the storefront core.

This module provides a hierarchy of custom exceptions for consistent error handling
throughout the application.

Exception Hierarchy:
--------------------
ShopException (base)
├── ValidationException
├── OrderException
│   ├── OrderNotFoundException
│   ├── InsufficientStockException
│   ├── InvalidOrderStateException
│   ├── InvalidStateTransitionException
│   └── OrderNumberGenerationException
├── PaymentException
│   ├── PaymentNotFoundException
│   ├── InvalidPaymentAmountException
│   ├── PaymentAlreadyProcessedException
│   ├── InvalidPaymentStateException
│   ├── PaymentInProgressException
│   ├── RefundNotSupportedException
│   └── PaymentGatewayException
├── ProductException
│   └── ProductNotFoundException
├── CartException
│   ├── EmptyCartException
│   └── CartItemNotFoundException
├── UserException
│   └── UserNotFoundException
└── AddressException
    └── AddressNotFoundException

Usage:
------
Services raise specific exceptions:
    raise OrderNotFoundException(order_id=123)

HTTP adapters catch and map them to status codes:
    try:
        await OrderService.get_order(order_id, user_id, session)
    except OrderNotFoundException as e:
        raise HTTPException(status_code=404, detail=str(e))
"""

from .base import ShopException, ValidationException
from .address import AddressException, AddressNotFoundException
from .cart import CartException, EmptyCartException, CartItemNotFoundException
from .order import (
    OrderException,
    OrderNotFoundException,
    InsufficientStockException,
    InvalidOrderStateException,
    InvalidStateTransitionException,
    OrderNumberGenerationException
)
from .payment import (
    PaymentException,
    PaymentNotFoundException,
    InvalidPaymentAmountException,
    PaymentAlreadyProcessedException,
    InvalidPaymentStateException,
    PaymentInProgressException,
    RefundNotSupportedException,
    PaymentGatewayException
)
from .product import ProductException, ProductNotFoundException
from .user import UserException, UserNotFoundException

__all__ = [
    # Base
    'ShopException',
    'ValidationException',

    # Address
    'AddressException',
    'AddressNotFoundException',

    # Cart
    'CartException',
    'EmptyCartException',
    'CartItemNotFoundException',

    # Order
    'OrderException',
    'OrderNotFoundException',
    'InsufficientStockException',
    'InvalidOrderStateException',
    'InvalidStateTransitionException',
    'OrderNumberGenerationException',

    # Payment
    'PaymentException',
    'PaymentNotFoundException',
    'InvalidPaymentAmountException',
    'PaymentAlreadyProcessedException',
    'InvalidPaymentStateException',
    'PaymentInProgressException',
    'RefundNotSupportedException',
    'PaymentGatewayException',

    # Product
    'ProductException',
    'ProductNotFoundException',

    # User
    'UserException',
    'UserNotFoundException',
]
