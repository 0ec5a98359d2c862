from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from db import session_execute, session_flush
from enums.product_type import ProductType
from models.cartItem import CartItem, CartItemDTO


class CartItemRepository:
    @staticmethod
    async def create(cart_item: CartItemDTO, session: AsyncSession) -> int:
        cart_item = CartItem(**cart_item.model_dump(exclude_none=True))
        session.add(cart_item)
        await session_flush(session)
        return cart_item.id

    @staticmethod
    async def get_by_user(user_id: int, session: AsyncSession) -> list[CartItemDTO]:
        stmt = select(CartItem).where(CartItem.user_id == user_id).order_by(CartItem.id).execution_options(populate_existing=True)
        cart_items = await session_execute(stmt, session)
        return [CartItemDTO.model_validate(cart_item, from_attributes=True)
                for cart_item in cart_items.scalars().all()]

    @staticmethod
    async def get_by_id(cart_item_id: int, user_id: int, session: AsyncSession) -> CartItemDTO | None:
        stmt = select(CartItem).where(CartItem.id == cart_item_id, CartItem.user_id == user_id).execution_options(populate_existing=True)
        cart_item = await session_execute(stmt, session)
        cart_item = cart_item.scalar()
        if cart_item is not None:
            return CartItemDTO.model_validate(cart_item, from_attributes=True)
        return None

    @staticmethod
    async def get_by_product(user_id: int, product_type: ProductType, product_id: int,
                             session: AsyncSession) -> CartItemDTO | None:
        stmt = select(CartItem).where(CartItem.user_id == user_id,
                                      CartItem.product_type == product_type,
                                      CartItem.product_id == product_id).execution_options(populate_existing=True)
        cart_item = await session_execute(stmt, session)
        cart_item = cart_item.scalar()
        if cart_item is not None:
            return CartItemDTO.model_validate(cart_item, from_attributes=True)
        return None

    @staticmethod
    async def update_quantity(cart_item_id: int, quantity: int, session: AsyncSession) -> None:
        stmt = update(CartItem).where(CartItem.id == cart_item_id).values(quantity=quantity)
        await session_execute(stmt, session)

    @staticmethod
    async def remove_from_cart(cart_item_id: int, session: AsyncSession) -> None:
        stmt = delete(CartItem).where(CartItem.id == cart_item_id)
        await session_execute(stmt, session)

    @staticmethod
    async def clear(user_id: int, session: AsyncSession) -> int:
        stmt = delete(CartItem).where(CartItem.user_id == user_id)
        result = await session_execute(stmt, session)
        return result.rowcount
