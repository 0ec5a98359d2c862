from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db import session_execute, session_flush
from enums.membership_tier import MembershipTier
from models.user import UserDTO, User


class UserRepository:
    @staticmethod
    async def get_by_id(user_id: int, session: AsyncSession) -> UserDTO | None:
        stmt = select(User).where(User.id == user_id).execution_options(populate_existing=True)
        user = await session_execute(stmt, session)
        user = user.scalar()
        if user is not None:
            return UserDTO.model_validate(user, from_attributes=True)
        else:
            return user

    @staticmethod
    async def create(user_dto: UserDTO, session: AsyncSession) -> int:
        user_dto_dict = user_dto.model_dump(exclude_none=True)
        user = User(**user_dto_dict)
        session.add(user)
        await session_flush(session)
        return user.id

    @staticmethod
    async def update(user_dto: UserDTO, session: AsyncSession) -> None:
        user_dto_dict = user_dto.model_dump(exclude_none=True, exclude={'id', 'created_at'})
        stmt = update(User).where(User.id == user_dto.id).values(**user_dto_dict)
        await session_execute(stmt, session)

    @staticmethod
    async def add_points(user_id: int, points: int, session: AsyncSession) -> None:
        # Increment in SQL so concurrent settlements don't overwrite each other
        stmt = (update(User)
                .where(User.id == user_id)
                .values(membership_points=User.membership_points + points))
        await session_execute(stmt, session)

    @staticmethod
    async def set_membership(user_id: int, tier: MembershipTier, points: int | None,
                             session: AsyncSession) -> None:
        values = {'membership_tier': tier}
        if points is not None:
            values['membership_points'] = points
        stmt = update(User).where(User.id == user_id).values(**values)
        await session_execute(stmt, session)
