"""
Unit Tests: TransactionManager (atomic_transaction and with_retry)
"""

import pytest
from sqlalchemy import select, func
from sqlalchemy.exc import OperationalError, IntegrityError

from models.brand import Brand
from utils.transaction_manager import TransactionManager


async def brand_count(session) -> int:
    result = await session.execute(select(func.count()).select_from(Brand))
    return result.scalar_one()


class TestAtomicTransaction:

    @pytest.mark.asyncio
    async def test_commits_on_success(self, test_session):
        async with TransactionManager.atomic_transaction(test_session):
            test_session.add(Brand(name="Yoshimura"))

        assert await brand_count(test_session) == 1

    @pytest.mark.asyncio
    async def test_rolls_back_and_reraises(self, test_session):
        with pytest.raises(ValueError):
            async with TransactionManager.atomic_transaction(test_session):
                test_session.add(Brand(name="Yoshimura"))
                await test_session.flush()
                raise ValueError("boom")

        assert await brand_count(test_session) == 0


class TestWithRetry:

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self):
        attempts = []

        @TransactionManager.with_retry(max_retries=2, delay_base=0.001)
        async def flaky_write():
            attempts.append(1)
            if len(attempts) == 1:
                raise OperationalError("INSERT", {}, Exception("database is locked"))
            return "done"

        assert await flaky_write() == "done"
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        attempts = []

        @TransactionManager.with_retry(max_retries=2, delay_base=0.001)
        async def duplicate_write():
            attempts.append(1)
            raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

        with pytest.raises(IntegrityError):
            await duplicate_write()
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_other_errors_not_retried(self):
        attempts = []

        @TransactionManager.with_retry(max_retries=3, delay_base=0.001)
        async def broken_write():
            attempts.append(1)
            raise KeyError("nope")

        with pytest.raises(KeyError):
            await broken_write()
        assert len(attempts) == 1
