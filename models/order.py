from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, Float, DateTime, ForeignKey, String, func, CheckConstraint, Index, Text
from sqlalchemy import Enum as SQLEnum

from enums.currency import Currency
from enums.order_payment_status import OrderPaymentStatus
from enums.order_status import OrderStatus
from models.base import Base
from models.payment import PaymentDTO


class Order(Base):
    __tablename__ = 'orders'

    id = Column(Integer, primary_key=True, unique=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    # SBR-<base36 timestamp>-<random>, unique across all orders
    order_number = Column(String, nullable=False, unique=True)
    status = Column(SQLEnum(OrderStatus), nullable=False, default=OrderStatus.PENDING)
    payment_status = Column(SQLEnum(OrderPaymentStatus), nullable=False, default=OrderPaymentStatus.UNPAID)

    # Totals: subtotal + shipping_cost == total_amount (membership discount is never applied here)
    subtotal = Column(Float, nullable=False)
    shipping_cost = Column(Float, nullable=False, default=0.0)
    total_amount = Column(Float, nullable=False)
    currency = Column(SQLEnum(Currency), nullable=False)

    shipping_address_id = Column(Integer, ForeignKey('addresses.id', ondelete='SET NULL'), nullable=True)
    # Address Snapshot (JSON)
    # Address as it was when the order was placed; later edits to the address row don't affect it
    # Format: {"label": "Home", "country": "UAE", "city": "Dubai", "street": "...", "postal_code": "..."}
    shipping_address_snapshot = Column(Text, nullable=True)

    tracking_number = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())
    paid_at = Column(DateTime, nullable=True)
    shipped_at = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint('total_amount >= 0', name='check_order_total_amount_non_negative'),
        CheckConstraint('shipping_cost >= 0', name='check_order_shipping_cost_non_negative'),
        Index('ix_orders_user_created', 'user_id', 'created_at'),
    )


class OrderDTO(BaseModel):
    id: int | None = None
    user_id: int | None = None
    order_number: str | None = None
    status: OrderStatus | None = None
    payment_status: OrderPaymentStatus | None = None
    subtotal: float | None = None
    shipping_cost: float | None = 0.0
    total_amount: float | None = None
    currency: Currency | None = None
    shipping_address_id: int | None = None
    shipping_address_snapshot: str | None = None  # JSON string with address at order creation
    tracking_number: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    paid_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None


class OrderItemDetailDTO(BaseModel):
    """Order line joined to the live catalog row for display."""
    id: int
    product_type: str
    product_id: int
    quantity: int
    price: float
    line_total: float
    name: str | None = None
    images: list[str] = []
    brand_name: str | None = None


class OrderDetailDTO(BaseModel):
    order: OrderDTO
    items: list[OrderItemDetailDTO]
    payments: list[PaymentDTO]
    shipping_address: dict | None = None


class TrackingStepDTO(BaseModel):
    status: str
    label: str
    date: datetime | None = None
    completed: bool
    current: bool


class OrderTrackingDTO(BaseModel):
    order_number: str
    status: OrderStatus
    tracking_number: str | None = None
    timeline: list[TrackingStepDTO]


class OrderListDTO(BaseModel):
    orders: list[OrderDTO]
    page: int
    limit: int
    total: int
    pages: int
