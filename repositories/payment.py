from datetime import datetime

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from db import session_execute, session_flush
from enums.payment_status import PaymentStatus
from models.order import Order
from models.payment import Payment, PaymentDTO


class PaymentRepository:
    @staticmethod
    async def create(payment_dto: PaymentDTO, session: AsyncSession) -> int:
        payment = Payment(**payment_dto.model_dump(exclude_none=True))
        session.add(payment)
        await session_flush(session)
        return payment.id

    @staticmethod
    async def get_by_id(payment_id: int, session: AsyncSession) -> PaymentDTO | None:
        stmt = select(Payment).where(Payment.id == payment_id).execution_options(populate_existing=True)
        payment = await session_execute(stmt, session)
        payment = payment.scalar()
        if payment is not None:
            return PaymentDTO.model_validate(payment, from_attributes=True)
        return None

    @staticmethod
    async def get_by_order_id(order_id: int, session: AsyncSession) -> list[PaymentDTO]:
        """Payment history for an order, newest first."""
        stmt = (select(Payment)
                .where(Payment.order_id == order_id)
                .order_by(Payment.created_at.desc(), Payment.id.desc())
                .execution_options(populate_existing=True))
        payments = await session_execute(stmt, session)
        return [PaymentDTO.model_validate(payment, from_attributes=True) for payment in payments.scalars().all()]

    @staticmethod
    async def update(payment_id: int, session: AsyncSession, **values) -> None:
        stmt = update(Payment).where(Payment.id == payment_id).values(updated_at=datetime.now(), **values)
        await session_execute(stmt, session)

    @staticmethod
    async def transition(payment_id: int, from_status: PaymentStatus, to_status: PaymentStatus,
                         session: AsyncSession, **values) -> bool:
        """
        Move a payment to to_status only if it is still in from_status.

        Returns False when another attempt changed the status first.
        """
        stmt = (update(Payment)
                .where(Payment.id == payment_id, Payment.status == from_status)
                .values(status=to_status, updated_at=datetime.now(), **values))
        result = await session_execute(stmt, session)
        return result.rowcount == 1

    @staticmethod
    async def get_in_flight_for_order(order_id: int, session: AsyncSession) -> PaymentDTO | None:
        """A payment of the order with a gateway call still running, if any."""
        stmt = (select(Payment)
                .where(Payment.order_id == order_id, Payment.status == PaymentStatus.PROCESSING)
                .limit(1)
                .execution_options(populate_existing=True))
        payment = await session_execute(stmt, session)
        payment = payment.scalar()
        if payment is not None:
            return PaymentDTO.model_validate(payment, from_attributes=True)
        return None

    @staticmethod
    async def refund_completed_for_order(order_id: int, session: AsyncSession) -> int:
        """Mark every completed payment of the order refunded. Returns affected rows."""
        now = datetime.now()
        stmt = (update(Payment)
                .where(Payment.order_id == order_id, Payment.status == PaymentStatus.COMPLETED)
                .values(status=PaymentStatus.REFUNDED, refunded_amount=Payment.amount,
                        refunded_at=now, updated_at=now))
        result = await session_execute(stmt, session)
        return result.rowcount

    @staticmethod
    async def get_for_user(user_id: int, status: PaymentStatus | None, page: int, limit: int,
                           session: AsyncSession) -> list[tuple[PaymentDTO, str]]:
        """Payments across all of a user's orders with their order numbers, newest first."""
        stmt = (select(Payment, Order.order_number)
                .join(Order, Payment.order_id == Order.id)
                .where(Order.user_id == user_id))
        if status is not None:
            stmt = stmt.where(Payment.status == status)
        stmt = (stmt.order_by(Payment.created_at.desc(), Payment.id.desc())
                .limit(limit)
                .offset((page - 1) * limit)
                .execution_options(populate_existing=True))
        rows = await session_execute(stmt, session)
        return [(PaymentDTO.model_validate(payment, from_attributes=True), order_number)
                for payment, order_number in rows.all()]

    @staticmethod
    async def count_for_user(user_id: int, status: PaymentStatus | None, session: AsyncSession) -> int:
        stmt = (select(func.count(Payment.id))
                .join(Order, Payment.order_id == Order.id)
                .where(Order.user_id == user_id))
        if status is not None:
            stmt = stmt.where(Payment.status == status)
        count = await session_execute(stmt, session)
        return count.scalar_one()
