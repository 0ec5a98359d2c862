from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, DateTime, String, Boolean, func, CheckConstraint
from sqlalchemy import Enum as SQLEnum

from enums.membership_tier import MembershipTier
from models.base import Base


class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    email = Column(String, nullable=False, unique=True)
    full_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    is_admin = Column(Boolean, nullable=False, default=False)

    # Loyalty
    membership_tier = Column(SQLEnum(MembershipTier), nullable=False, default=MembershipTier.SILVER)
    membership_points = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint('membership_points >= 0', name='check_membership_points_non_negative'),
    )


class UserDTO(BaseModel):
    id: int | None = None
    email: str | None = None
    full_name: str | None = None
    phone: str | None = None
    email_verified: bool | None = None
    is_admin: bool | None = None
    membership_tier: MembershipTier | None = None
    membership_points: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PrincipalDTO(BaseModel):
    """Authenticated caller handed in by the transport layer."""
    id: int
    membership_tier: MembershipTier = MembershipTier.SILVER
    email_verified: bool = True
    is_admin: bool = False
