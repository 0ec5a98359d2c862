"""
Models Package

This file ensures all SQLAlchemy models are imported and registered,
which is required for foreign keys to resolve correctly.
"""

from models.base import Base
from models.user import User
from models.brand import Brand
from models.category import Category
from models.part import Part
from models.merchandise import Merchandise
from models.address import Address
from models.cartItem import CartItem
from models.order import Order
from models.orderItem import OrderItem
from models.payment import Payment

__all__ = [
    'Base',
    'User',
    'Brand',
    'Category',
    'Part',
    'Merchandise',
    'Address',
    'CartItem',
    'Order',
    'OrderItem',
    'Payment',
]
