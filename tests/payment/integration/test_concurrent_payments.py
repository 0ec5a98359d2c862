"""
Integration Test: payment operations racing on one order

Each caller gets its own session on a file-backed SQLite database and the
gateway mock holds its answer for a moment, so the second caller arrives
while the first one's gateway call is still running. Only one of them may
reach the gateway; the other is turned away before any money moves.
"""

import asyncio
from unittest.mock import patch, AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from db import build_engine, create_db_and_tables
from enums.order_payment_status import OrderPaymentStatus
from enums.order_status import OrderStatus
from enums.payment_method import PaymentMethod
from enums.payment_status import PaymentStatus
from enums.product_type import ProductType
from exceptions.payment import InvalidPaymentStateException, PaymentInProgressException
from models.address import Address
from models.part import Part
from models.user import User, PrincipalDTO
from repositories.order import OrderRepository
from repositories.payment import PaymentRepository
from services.cart import CartService
from services.order import OrderService
from services.payment import PaymentService
from services.payment_gateway import PaymentGatewayClient

CARD_DATA = {"payment_method_id": "pm_race1234567"}
GATEWAY_DELAY = 0.2


def slow_gateway(body):
    async def answer(*args, **kwargs):
        await asyncio.sleep(GATEWAY_DELAY)
        return body
    return AsyncMock(side_effect=answer)


@pytest_asyncio.fixture
async def file_engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'payments.db'}", echo=False)
    await create_db_and_tables(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def placed_order(file_engine):
    session_maker = async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        part = Part(name="Carbon Chain Guard", original_price=120.0, selling_price=100.0, quantity=5, weight=1.0)
        user = User(email="racer@example.com", email_verified=True)
        session.add_all([part, user])
        await session.flush()
        address = Address(user_id=user.id, country="Saudi Arabia", city="Jeddah", street="Tahlia St",
                          is_default=True)
        session.add(address)
        await session.commit()

        principal = PrincipalDTO(id=user.id)
        await CartService.add_or_increment(principal.id, ProductType.PART, part.id, 1, session)
        order, _ = await OrderService.create_order(principal, address.id, PaymentMethod.CARD, None, session)
    return session_maker, principal, order


async def pay(session_maker, principal, order_id):
    async with session_maker() as session:
        try:
            return await PaymentService.process_payment(order_id, principal, PaymentMethod.CARD, CARD_DATA,
                                                        session)
        except PaymentInProgressException as e:
            return e


async def refund(session_maker, payment_id):
    async with session_maker() as session:
        try:
            return await PaymentService.refund_payment(payment_id, session)
        except InvalidPaymentStateException as e:
            return e


async def cancel_during_charge(session_maker, principal, order_id):
    await asyncio.sleep(GATEWAY_DELAY / 4)
    async with session_maker() as session:
        try:
            return await OrderService.cancel_order(order_id, principal.id, session)
        except PaymentInProgressException as e:
            return e


async def payments_of(session_maker, order_id):
    async with session_maker() as session:
        return await PaymentRepository.get_by_order_id(order_id, session)


class TestConcurrentPayments:

    @pytest.mark.asyncio
    async def test_double_submit_charges_once(self, placed_order):
        session_maker, principal, order = placed_order
        charge = slow_gateway({"id": "ch_race", "status": "succeeded"})

        with patch.object(PaymentGatewayClient, "create_or_confirm_charge", new=charge):
            results = await asyncio.gather(pay(session_maker, principal, order.id),
                                           pay(session_maker, principal, order.id))

        assert charge.await_count == 1
        assert len([r for r in results if isinstance(r, PaymentInProgressException)]) == 1
        payments = await payments_of(session_maker, order.id)
        assert [p.status for p in payments] == [PaymentStatus.COMPLETED]

    @pytest.mark.asyncio
    async def test_double_refund_refunds_once(self, placed_order):
        session_maker, principal, order = placed_order
        with patch.object(PaymentGatewayClient, "create_or_confirm_charge",
                          new=AsyncMock(return_value={"id": "ch_race", "status": "succeeded"})):
            payment, _ = await pay(session_maker, principal, order.id)
        gateway_refund = slow_gateway({"id": "re_race", "status": "succeeded"})

        with patch.object(PaymentGatewayClient, "refund", new=gateway_refund):
            results = await asyncio.gather(refund(session_maker, payment.id), refund(session_maker, payment.id))

        assert gateway_refund.await_count == 1
        assert len([r for r in results if isinstance(r, InvalidPaymentStateException)]) == 1
        payments = await payments_of(session_maker, order.id)
        assert payments[0].status == PaymentStatus.REFUNDED
        assert payments[0].refunded_amount == payment.amount

    @pytest.mark.asyncio
    async def test_cancel_waits_for_running_charge(self, placed_order):
        session_maker, principal, order = placed_order
        charge = slow_gateway({"id": "ch_race", "status": "succeeded"})

        with patch.object(PaymentGatewayClient, "create_or_confirm_charge", new=charge):
            paid, rejected = await asyncio.gather(pay(session_maker, principal, order.id),
                                                  cancel_during_charge(session_maker, principal, order.id))

        assert isinstance(rejected, PaymentInProgressException)
        payment, paid_order = paid
        assert payment.status == PaymentStatus.COMPLETED
        assert paid_order.status == OrderStatus.PAID

        # Once the charge settled, cancelling marks the captured payment refunded
        async with session_maker() as session:
            cancelled = await OrderService.cancel_order(order.id, principal.id, session)
            stored = await OrderRepository.get_by_id(order.id, session)
        assert cancelled.status == OrderStatus.CANCELLED
        assert stored.payment_status == OrderPaymentStatus.REFUNDED
        payments = await payments_of(session_maker, order.id)
        assert payments[0].status == PaymentStatus.REFUNDED
