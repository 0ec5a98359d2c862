from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any
import logging

from sqlalchemy import event, Result, CursorResult
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine

import config
from models.base import Base

"""
Imports of these models are needed to correctly create tables in the database.
For more information see https://stackoverflow.com/questions/7478403/sqlalchemy-classes-across-files
"""
from models.user import User
from models.brand import Brand
from models.category import Category
from models.part import Part
from models.merchandise import Merchandise
from models.address import Address
from models.cartItem import CartItem
from models.order import Order
from models.orderItem import OrderItem
from models.payment import Payment


def build_engine(url: str, **kwargs) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    SQLite engines get foreign keys enabled and every transaction opened
    with BEGIN IMMEDIATE, so concurrent writers serialize on the database
    lock before they read stock. Other dialects rely on SELECT ... FOR UPDATE.
    """
    kwargs.setdefault("echo", config.SQL_ECHO)
    async_engine = create_async_engine(url, **kwargs)

    if async_engine.dialect.name == "sqlite":
        @event.listens_for(async_engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            # Hand transaction control to SQLAlchemy's "begin" event
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(async_engine.sync_engine, "begin")
        def do_begin(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return async_engine


_url = make_url(config.DB_URL)
if _url.get_backend_name() == "sqlite" and _url.database and _url.database != ":memory:":
    data_folder = Path(_url.database).parent
    if str(data_folder) and data_folder.exists() is False:
        data_folder.mkdir(parents=True)

engine = build_engine(config.DB_URL)
session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def get_db_session() -> AsyncSession:
    session = None
    try:
        async with session_maker() as async_session:
            session = async_session
            yield session
    finally:
        if session is not None:
            await session.close()


async def session_execute(stmt, session: AsyncSession) -> Result[Any] | CursorResult[Any]:
    query_result = await session.execute(stmt)
    return query_result


async def session_flush(session: AsyncSession) -> None:
    await session.flush()


async def session_refresh(session: AsyncSession, instance) -> None:
    await session.refresh(instance)


async def session_commit(session: AsyncSession) -> None:
    await session.commit()


async def session_rollback(session: AsyncSession) -> None:
    await session.rollback()


async def create_db_and_tables(target_engine: AsyncEngine | None = None):
    target_engine = target_engine or engine
    async with target_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logging.info(f"🗄️ Database schema ready ({len(Base.metadata.tables)} tables)")
