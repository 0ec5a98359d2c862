from datetime import datetime
import logging

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from db import session_execute, session_flush
from enums.order_payment_status import OrderPaymentStatus
from enums.order_status import OrderStatus
from models.order import Order, OrderDTO
from utils.order_filters import OrderQueryFilter

logger = logging.getLogger(__name__)


class OrderRepository:
    @staticmethod
    async def create(order_dto: OrderDTO, session: AsyncSession) -> int:
        order = Order(**order_dto.model_dump(exclude_none=True))
        session.add(order)
        await session_flush(session)
        return order.id

    @staticmethod
    async def get_by_id(order_id: int, session: AsyncSession, for_update: bool = False) -> OrderDTO | None:
        stmt = select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        order = await session_execute(stmt, session)
        order = order.scalar()
        if order is not None:
            return OrderDTO.model_validate(order, from_attributes=True)
        return None

    @staticmethod
    async def get_by_id_for_user(order_id: int, user_id: int, session: AsyncSession,
                                 for_update: bool = False) -> OrderDTO | None:
        stmt = select(Order).where(Order.id == order_id, Order.user_id == user_id).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        order = await session_execute(stmt, session)
        order = order.scalar()
        if order is not None:
            return OrderDTO.model_validate(order, from_attributes=True)
        return None

    @staticmethod
    async def order_number_exists(order_number: str, session: AsyncSession) -> bool:
        stmt = select(Order.id).where(Order.order_number == order_number)
        result = await session_execute(stmt, session)
        return result.scalar() is not None

    @staticmethod
    async def update_status(order_id: int, status: OrderStatus, session: AsyncSession, **values) -> None:
        stmt = update(Order).where(Order.id == order_id).values(status=status, updated_at=datetime.now(), **values)
        await session_execute(stmt, session)

    @staticmethod
    async def update_payment_status(order_id: int, payment_status: OrderPaymentStatus,
                                    session: AsyncSession, **values) -> None:
        stmt = (update(Order)
                .where(Order.id == order_id)
                .values(payment_status=payment_status, updated_at=datetime.now(), **values))
        await session_execute(stmt, session)

    @staticmethod
    async def get_filtered(query_filter: OrderQueryFilter, page: int, limit: int,
                           session: AsyncSession) -> list[OrderDTO]:
        """
        Page through orders matching the filter predicates.

        Args:
            query_filter: Predicates and sort order
            page: 1-based page number
            limit: Page size
            session: Database session
        """
        stmt = (select(Order)
                .where(*query_filter.predicates())
                .order_by(*query_filter.order_by())
                .limit(limit)
                .offset((page - 1) * limit)
                .execution_options(populate_existing=True))
        orders = await session_execute(stmt, session)
        return [OrderDTO.model_validate(order, from_attributes=True) for order in orders.scalars().all()]

    @staticmethod
    async def count_filtered(query_filter: OrderQueryFilter, session: AsyncSession) -> int:
        stmt = select(func.count(Order.id)).where(*query_filter.predicates())
        count = await session_execute(stmt, session)
        return count.scalar_one()
