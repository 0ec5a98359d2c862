from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, Text, func, CheckConstraint

from models.base import Base


class Merchandise(Base):
    __tablename__ = 'merchandise'

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    weight = Column(Float, nullable=False, default=0.0)  # kg
    # JSON-encoded lists
    sizes = Column(Text, nullable=True)
    colors = Column(Text, nullable=True)
    images = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint('quantity >= 0', name='check_merchandise_quantity_non_negative'),
        CheckConstraint('weight >= 0', name='check_merchandise_weight_non_negative'),
    )


class MerchandiseDTO(BaseModel):
    id: int | None = None
    name: str | None = None
    description: str | None = None
    price: float | None = None
    quantity: int | None = None
    weight: float | None = None
    sizes: str | None = None
    colors: str | None = None
    images: str | None = None
    is_active: bool | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
