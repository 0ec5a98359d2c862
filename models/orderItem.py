from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, DateTime, Float, func, ForeignKey, CheckConstraint, Index
from sqlalchemy import Enum as SQLEnum

from enums.product_type import ProductType
from models.base import Base


class OrderItem(Base):
    __tablename__ = 'order_items'

    # Add table-level constraints and indexes
    __table_args__ = (
        # Check constraints for data integrity
        CheckConstraint('quantity > 0', name='ck_order_item_positive_quantity'),
        CheckConstraint('price >= 0', name='ck_order_item_non_negative_price'),

        # Indexes for performance
        Index('ix_order_items_order_id', 'order_id'),
        Index('ix_order_items_product', 'product_type', 'product_id'),
    )

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False)
    product_type = Column(SQLEnum(ProductType), nullable=False)
    product_id = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)
    # Unit price captured at creation; later catalog price changes don't touch it
    price = Column(Float, nullable=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)


class OrderItemDTO(BaseModel):
    id: int | None = None
    order_id: int | None = None
    product_type: ProductType | None = None
    product_id: int | None = None
    quantity: int | None = None
    price: float | None = None
    created_at: datetime | None = None
