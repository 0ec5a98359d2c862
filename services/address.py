import logging

from sqlalchemy.ext.asyncio import AsyncSession

from exceptions.address import AddressNotFoundException
from models.address import AddressDTO
from repositories.address import AddressRepository
from utils.transaction_manager import TransactionManager


class AddressService:
    """Shipping addresses; keeps at most one default per user."""

    @staticmethod
    async def list_addresses(user_id: int, session: AsyncSession) -> list[AddressDTO]:
        return await AddressRepository.get_all_for_user(user_id, session)

    @staticmethod
    async def add_address(user_id: int, address_dto: AddressDTO, session: AsyncSession) -> AddressDTO:
        async with TransactionManager.atomic_transaction(session):
            existing = await AddressRepository.get_all_for_user(user_id, session)
            # First address becomes the default
            is_default = bool(address_dto.is_default) or not existing
            if is_default:
                await AddressRepository.unset_default(user_id, session)
            address_id = await AddressRepository.create(
                address_dto.model_copy(update={'user_id': user_id, 'is_default': is_default}), session
            )
            address = await AddressRepository.get_for_user(address_id, user_id, session)
        logging.info(f"🏠 User {user_id} added address {address_id}{' (default)' if is_default else ''}")
        return address

    @staticmethod
    async def update_address(user_id: int, address_id: int, address_dto: AddressDTO,
                             session: AsyncSession) -> AddressDTO:
        async with TransactionManager.atomic_transaction(session):
            if await AddressRepository.get_for_user(address_id, user_id, session) is None:
                raise AddressNotFoundException(address_id)
            if address_dto.is_default:
                await AddressRepository.unset_default(user_id, session, except_id=address_id)
            await AddressRepository.update(
                address_dto.model_copy(update={'id': address_id, 'user_id': user_id}), session
            )
            address = await AddressRepository.get_for_user(address_id, user_id, session)
        return address

    @staticmethod
    async def delete_address(user_id: int, address_id: int, session: AsyncSession) -> None:
        """Orders keep their address snapshot, so deleting is always allowed."""
        async with TransactionManager.atomic_transaction(session):
            if not await AddressRepository.delete(address_id, user_id, session):
                raise AddressNotFoundException(address_id)
        logging.info(f"🏠 User {user_id} deleted address {address_id}")
