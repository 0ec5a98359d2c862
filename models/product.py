from typing import NamedTuple

from pydantic import BaseModel

from enums.product_type import ProductType


class ProductRef(NamedTuple):
    """Tagged reference to either a part or a merchandise row."""
    product_type: ProductType
    product_id: int


class ProductDTO(BaseModel):
    """Part or merchandise normalized to the fields ordering needs."""
    product_type: ProductType
    product_id: int
    name: str
    unit_price: float
    quantity: int
    weight: float = 0.0
    images: list[str] = []
    brand_name: str | None = None
    is_active: bool = True

    @property
    def ref(self) -> ProductRef:
        return ProductRef(self.product_type, self.product_id)
