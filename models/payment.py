from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Float, Text, func, CheckConstraint, Index
from sqlalchemy import Enum as SQLEnum

from enums.payment_method import PaymentMethod
from enums.payment_status import PaymentStatus
from models.base import Base


class Payment(Base):
    __tablename__ = 'payments'

    id = Column(Integer, primary_key=True, unique=True)
    order_id = Column(Integer, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False)
    method = Column(SQLEnum(PaymentMethod), nullable=False)
    amount = Column(Float, nullable=False)
    refunded_amount = Column(Float, nullable=True)
    status = Column(SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    transaction_id = Column(String, nullable=True)
    # Whitelisted gateway fields only (JSON), never card data or API secrets
    gateway_response = Column(Text, nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())
    completed_at = Column(DateTime, nullable=True)
    refunded_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint('amount >= 0', name='check_payment_amount_non_negative'),
        Index('ix_payments_order_id', 'order_id'),
    )


class PaymentDTO(BaseModel):
    id: int | None = None
    order_id: int | None = None
    method: PaymentMethod | None = None
    amount: float | None = None
    refunded_amount: float | None = None
    status: PaymentStatus | None = None
    transaction_id: str | None = None
    gateway_response: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None
    refunded_at: datetime | None = None


class PaymentOutcomeDTO(BaseModel):
    """Normalized result every payment strategy returns."""
    status: PaymentStatus
    transaction_id: str | None = None
    gateway_response: dict = {}


class PaymentMethodInfoDTO(BaseModel):
    id: PaymentMethod
    name: str
    description: str
    enabled: bool = True
    refundable: bool = True


class PaymentHistoryItemDTO(PaymentDTO):
    order_number: str | None = None


class PaymentHistoryDTO(BaseModel):
    payments: list[PaymentHistoryItemDTO]
    page: int
    limit: int
    total: int
    pages: int
