from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, ForeignKey, CheckConstraint, DateTime, UniqueConstraint, func
from sqlalchemy import Enum as SQLEnum

from enums.product_type import ProductType
from models.base import Base


class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    # product_type + product_id address either parts or merchandise, so no FK on product_id
    product_type = Column(SQLEnum(ProductType), nullable=False)
    product_id = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=func.now())

    __table_args__ = (
        CheckConstraint('quantity > 0', name='check_quantity_positive'),
        UniqueConstraint('user_id', 'product_type', 'product_id', name='uq_cart_items_user_product'),
    )


class CartItemDTO(BaseModel):
    id: int | None = None
    user_id: int | None = None
    product_type: ProductType | None = None
    product_id: int | None = None
    quantity: int | None = None
    created_at: datetime | None = None
