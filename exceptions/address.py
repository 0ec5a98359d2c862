"""
Shipping address exceptions.
"""

from .base import ShopException


class AddressException(ShopException):
    """Base exception for shipping address errors."""
    pass


class AddressNotFoundException(AddressException):
    """Raised when address does not exist or belongs to another user."""

    def __init__(self, address_id: int):
        super().__init__(
            f"Address {address_id} not found",
            details={'address_id': address_id}
        )
        self.address_id = address_id
