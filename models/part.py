from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey, Text, func, CheckConstraint, Index

from models.base import Base


class Part(Base):
    __tablename__ = 'parts'

    id = Column(Integer, primary_key=True)
    brand_id = Column(Integer, ForeignKey('brands.id'), nullable=True)
    category_id = Column(Integer, ForeignKey('categories.id'), nullable=True)
    name = Column(String, nullable=False)
    part_number = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    original_price = Column(Float, nullable=False)
    selling_price = Column(Float, nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    weight = Column(Float, nullable=False, default=0.0)  # kg
    # JSON-encoded list of image paths
    images = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint('quantity >= 0', name='check_part_quantity_non_negative'),
        CheckConstraint('weight >= 0', name='check_part_weight_non_negative'),
        Index('ix_parts_brand_id', 'brand_id'),
    )


class PartDTO(BaseModel):
    id: int | None = None
    brand_id: int | None = None
    category_id: int | None = None
    name: str | None = None
    part_number: str | None = None
    description: str | None = None
    original_price: float | None = None
    selling_price: float | None = None
    quantity: int | None = None
    weight: float | None = None
    images: str | None = None
    is_active: bool | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
