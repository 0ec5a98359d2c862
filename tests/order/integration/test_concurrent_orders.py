"""
Integration Test: concurrent checkouts against limited stock

Several users race for the last units of one product through separate
sessions on a file-backed SQLite database. Exactly `stock` orders may
succeed and stock must end at zero, never below.
"""

import asyncio

import pytest
import pytest_asyncio
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from db import build_engine, create_db_and_tables
from enums.order_status import OrderStatus
from enums.payment_method import PaymentMethod
from enums.product_type import ProductType
from exceptions.order import InsufficientStockException
from models.address import Address
from models.order import Order
from models.part import Part
from models.user import User, PrincipalDTO
from services.cart import CartService
from services.order import OrderService

BUYERS = 8
STOCK = 3


@pytest_asyncio.fixture
async def file_engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}", echo=False)
    await create_db_and_tables(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def race_setup(file_engine):
    session_maker = async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        part = Part(name="Limited Edition Clutch", original_price=400.0, selling_price=350.0,
                    quantity=STOCK, weight=2.0)
        session.add(part)
        buyers = []
        for index in range(BUYERS):
            user = User(email=f"buyer{index}@example.com", email_verified=True)
            session.add(user)
            await session.flush()
            address = Address(user_id=user.id, country="Qatar", city="Doha", street=f"Corniche {index}",
                              is_default=True)
            session.add(address)
            await session.flush()
            buyers.append((PrincipalDTO(id=user.id), address.id))
        await session.commit()

        for principal, _ in buyers:
            await CartService.add_or_increment(principal.id, ProductType.PART, part.id, 1, session)
    return session_maker, part.id, buyers


async def checkout(session_maker, principal, address_id):
    async with session_maker() as session:
        try:
            order, _ = await OrderService.create_order(principal, address_id, PaymentMethod.CASH, None, session)
            return order
        except InsufficientStockException as e:
            return e


class TestConcurrentCheckout:

    @pytest.mark.asyncio
    async def test_no_oversell(self, race_setup):
        session_maker, part_id, buyers = race_setup

        results = await asyncio.gather(*(checkout(session_maker, principal, address_id)
                                         for principal, address_id in buyers))

        placed = [r for r in results if not isinstance(r, InsufficientStockException)]
        rejected = [r for r in results if isinstance(r, InsufficientStockException)]
        assert len(placed) == STOCK
        assert len(rejected) == BUYERS - STOCK
        assert all(order.status == OrderStatus.PENDING for order in placed)

        async with session_maker() as session:
            stock = (await session.execute(select(Part.quantity).where(Part.id == part_id))).scalar_one()
            order_count = (await session.execute(select(func.count()).select_from(Order))).scalar_one()
        assert stock == 0
        assert order_count == STOCK
