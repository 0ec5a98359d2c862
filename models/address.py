from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, func, Index

from models.base import Base


class Address(Base):
    __tablename__ = 'addresses'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    label = Column(String, nullable=True)  # "Home", "Workshop", ...
    full_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    country = Column(String, nullable=False)
    city = Column(String, nullable=False)
    street = Column(String, nullable=False)
    postal_code = Column(String, nullable=True)
    # At most one default per user, maintained by AddressRepository
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=func.now())

    __table_args__ = (
        Index('ix_addresses_user_id', 'user_id'),
    )


class AddressDTO(BaseModel):
    id: int | None = None
    user_id: int | None = None
    label: str | None = None
    full_name: str | None = None
    phone: str | None = None
    country: str | None = None
    city: str | None = None
    street: str | None = None
    postal_code: str | None = None
    is_default: bool | None = None
    created_at: datetime | None = None

    def to_snapshot(self) -> dict:
        """Address fields frozen onto an order at creation time."""
        return self.model_dump(
            include={'label', 'full_name', 'phone', 'country', 'city', 'street', 'postal_code'}
        )
