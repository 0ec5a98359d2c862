import logging
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from functools import wraps
from datetime import datetime

from sqlalchemy.exc import OperationalError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_db_session, session_commit, session_rollback

logger = logging.getLogger(__name__)


class TransactionManager:
    """
    Utility class for running multi-table writes as one unit with
    commit/rollback handling and retry logic for transient conflicts.
    """

    # Transaction duration above which a warning is logged (seconds)
    TRANSACTION_TIMEOUT = 30

    # Retry configuration
    MAX_RETRIES = 3
    RETRY_DELAY_BASE = 0.1  # Base delay in seconds

    @staticmethod
    @asynccontextmanager
    async def atomic_transaction(session: Optional[AsyncSession] = None,
                                 timeout: Optional[int] = None) -> AsyncGenerator[AsyncSession, None]:
        """
        Context manager for atomic database transactions.

        Commits when the block exits normally; rolls back and re-raises on any
        exception, so none of the block's writes survive a failure.

        Usage:
            async with TransactionManager.atomic_transaction(session) as session:
                await OrderRepository.create(order_dto, session)
                await InventoryService.reserve(items, session)

        Args:
            session: Session to run in. A fresh session is opened when omitted.
            timeout: Duration in seconds after which a warning is logged
        """
        timeout = timeout or TransactionManager.TRANSACTION_TIMEOUT

        if session is None:
            async with get_db_session() as own_session:
                async with TransactionManager.atomic_transaction(own_session, timeout) as tx_session:
                    yield tx_session
            return

        transaction_start = datetime.now()
        logger.debug(f"Transaction started at {transaction_start}")
        try:
            yield session

            duration = (datetime.now() - transaction_start).total_seconds()
            if duration > timeout:
                logger.warning(f"Transaction exceeded timeout: {duration}s > {timeout}s")

            await session_commit(session)
            logger.debug(f"Transaction committed successfully in {duration:.2f}s")
        except Exception as e:
            try:
                await session_rollback(session)
                logger.info(f"Transaction rolled back due to error: {str(e)}")
            except Exception as rollback_error:
                logger.critical(f"Failed to rollback transaction: {str(rollback_error)}")
            raise

    @staticmethod
    def with_retry(max_retries: Optional[int] = None, delay_base: Optional[float] = None,
                   retry_on: tuple = (OperationalError, IntegrityError)):
        """
        Decorator for automatic retry of database operations with exponential backoff.

        The wrapped coroutine must roll back its own work before raising
        (atomic_transaction does), so every attempt starts from a clean state.

        Args:
            max_retries: Maximum number of retry attempts
            delay_base: Base delay for exponential backoff
            retry_on: Exception types treated as transient
        """
        max_retries = max_retries if max_retries is not None else TransactionManager.MAX_RETRIES
        delay_base = delay_base or TransactionManager.RETRY_DELAY_BASE

        def decorator(func):
            @wraps(func)
            async def wrapper(*args, **kwargs):
                last_exception = None

                for attempt in range(max_retries + 1):
                    try:
                        return await func(*args, **kwargs)
                    except retry_on as e:
                        last_exception = e

                        if attempt == max_retries:
                            logger.error(f"Function {func.__name__} failed after {max_retries} retries: {str(e)}")
                            break

                        # Exponential backoff with jitter
                        delay = delay_base * (2 ** attempt) + (delay_base * 0.1 * attempt)
                        logger.warning(f"Attempt {attempt + 1} failed for {func.__name__}, retrying in {delay:.2f}s: {str(e)}")
                        await asyncio.sleep(delay)

                raise last_exception

            return wrapper
        return decorator
