from pydantic import BaseModel

from enums.product_type import ProductType


class CartLineDTO(BaseModel):
    cart_item_id: int
    product_type: ProductType
    product_id: int
    name: str
    unit_price: float
    quantity: int
    available_quantity: int
    weight: float
    images: list[str] = []
    line_total: float
    # False when the product was deactivated or stock fell below the quantity; checkout rejects such lines
    available: bool = True


class CartSummaryDTO(BaseModel):
    subtotal: float
    discount_percentage: float
    discount_amount: float
    total: float  # display only, orders are charged the undiscounted subtotal
    item_count: int
    total_quantity: int
    has_unavailable_items: bool = False


class CartDTO(BaseModel):
    user_id: int
    items: list[CartLineDTO]
    summary: CartSummaryDTO


class CheckoutSummaryDTO(BaseModel):
    user_id: int
    items: list[CartLineDTO]
    subtotal: float
    total_weight: float
    discount_percentage: float
    discount_amount: float
    total: float
    item_count: int
    total_quantity: int
    points_earned: int
