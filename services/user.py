import logging

from sqlalchemy.ext.asyncio import AsyncSession

from db import session_commit
from enums.membership_tier import MembershipTier
from exceptions.base import ValidationException
from exceptions.user import UserNotFoundException
from models.user import UserDTO, PrincipalDTO
from repositories.user import UserRepository
from services.pricing import PricingService


class UserService:

    @staticmethod
    async def get_principal(user_id: int, session: AsyncSession) -> PrincipalDTO:
        user = await UserRepository.get_by_id(user_id, session)
        if user is None:
            raise UserNotFoundException(user_id)
        return PrincipalDTO(
            id=user.id,
            membership_tier=user.membership_tier,
            email_verified=user.email_verified,
            is_admin=user.is_admin,
        )

    @staticmethod
    async def update_membership(user_id: int, tier: MembershipTier | str, session: AsyncSession,
                                points: int | None = None) -> UserDTO:
        """
        Admin override of a user's tier (and optionally points).

        Raises:
            ValidationException: Unknown tier or negative points
            UserNotFoundException: User missing
        """
        try:
            tier = MembershipTier(tier)
        except ValueError:
            raise ValidationException("membership_tier", f"unknown tier {tier!r}")
        if points is not None and points < 0:
            raise ValidationException("membership_points", "must not be negative")

        user = await UserRepository.get_by_id(user_id, session)
        if user is None:
            raise UserNotFoundException(user_id)

        await UserRepository.set_membership(user_id, tier, points, session)
        await session_commit(session)
        user = await UserRepository.get_by_id(user_id, session)
        logging.info(f"👑 User {user_id} membership set to {tier.value} ({user.membership_points} points)")
        return user

    @staticmethod
    async def get_membership_status(user_id: int, session: AsyncSession) -> dict:
        """Current tier, points and whether the points already qualify for the next tier."""
        user = await UserRepository.get_by_id(user_id, session)
        if user is None:
            raise UserNotFoundException(user_id)
        next_tier = PricingService.next_membership_tier(user.membership_tier)
        return {
            'membership_tier': user.membership_tier,
            'membership_points': user.membership_points,
            'discount_percentage': PricingService.membership_discount(user.membership_tier) * 100,
            'next_tier': next_tier,
            'can_upgrade': PricingService.can_upgrade_membership(user.membership_tier, user.membership_points),
        }
