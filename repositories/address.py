from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from db import session_execute, session_flush
from models.address import Address, AddressDTO


class AddressRepository:
    @staticmethod
    async def get_for_user(address_id: int, user_id: int, session: AsyncSession) -> AddressDTO | None:
        stmt = select(Address).where(Address.id == address_id, Address.user_id == user_id).execution_options(populate_existing=True)
        address = await session_execute(stmt, session)
        address = address.scalar()
        if address is not None:
            return AddressDTO.model_validate(address, from_attributes=True)
        return None

    @staticmethod
    async def get_all_for_user(user_id: int, session: AsyncSession) -> list[AddressDTO]:
        stmt = (select(Address)
                .where(Address.user_id == user_id)
                .order_by(Address.is_default.desc(), Address.id.desc())
                .execution_options(populate_existing=True))
        addresses = await session_execute(stmt, session)
        return [AddressDTO.model_validate(address, from_attributes=True)
                for address in addresses.scalars().all()]

    @staticmethod
    async def create(address_dto: AddressDTO, session: AsyncSession) -> int:
        address = Address(**address_dto.model_dump(exclude_none=True, exclude={'id', 'created_at'}))
        session.add(address)
        await session_flush(session)
        return address.id

    @staticmethod
    async def update(address_dto: AddressDTO, session: AsyncSession) -> None:
        values = address_dto.model_dump(exclude_none=True, exclude={'id', 'user_id', 'created_at'})
        stmt = (update(Address)
                .where(Address.id == address_dto.id, Address.user_id == address_dto.user_id)
                .values(**values))
        await session_execute(stmt, session)

    @staticmethod
    async def unset_default(user_id: int, session: AsyncSession, except_id: int | None = None) -> None:
        stmt = update(Address).where(Address.user_id == user_id, Address.is_default == True)
        if except_id is not None:
            stmt = stmt.where(Address.id != except_id)
        await session_execute(stmt.values(is_default=False), session)

    @staticmethod
    async def delete(address_id: int, user_id: int, session: AsyncSession) -> bool:
        stmt = delete(Address).where(Address.id == address_id, Address.user_id == user_id)
        result = await session_execute(stmt, session)
        return result.rowcount == 1
