"""
Catalog-related exceptions.
"""

from .base import ShopException


class ProductException(ShopException):
    """Base exception for catalog errors."""
    pass


class ProductNotFoundException(ProductException):
    """Raised when a product reference does not resolve to an active product."""

    def __init__(self, product_type: str, product_id: int):
        super().__init__(
            f"Product {product_type}:{product_id} not found",
            details={'product_type': product_type, 'product_id': product_id}
        )
        self.product_type = product_type
        self.product_id = product_id
