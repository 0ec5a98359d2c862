"""
Order Management Service

Admin back-office operations on orders:
- Order list views (with pagination and filtering across all users)
- Order detail views
- Forward status changes (shipped, delivered) and admin cancellation

Usage:
    # Orders waiting for shipment (default filter)
    await OrderManagementService.list_orders(session)

    # One user's cancelled orders
    await OrderManagementService.list_orders(session, filter_type=OrderFilterType.CANCELLED, user_id=42)
"""

from datetime import datetime
import logging
import math

from sqlalchemy.ext.asyncio import AsyncSession

import config
from enums.order_filter import OrderFilterType
from enums.order_payment_status import OrderPaymentStatus
from enums.order_status import OrderStatus
from exceptions.base import ValidationException
from exceptions.order import OrderNotFoundException, InvalidStateTransitionException
from models.order import OrderDTO, OrderDetailDTO, OrderListDTO
from repositories.order import OrderRepository
from services.order import OrderService
from utils.order_filters import OrderQueryFilter, OrderSortField
from utils.order_state_machine import OrderStateMachine
from utils.transaction_manager import TransactionManager


class OrderManagementService:
    """Order management for admins"""

    # Status emoji mapping for back-office listings
    STATUS_EMOJI_MAP = {
        OrderStatus.PENDING: "⏳",
        OrderStatus.PAID: "✅",
        OrderStatus.SHIPPED: "🚚",
        OrderStatus.DELIVERED: "📦",
        OrderStatus.CANCELLED: "❌",
    }

    @staticmethod
    def get_status_emoji(status: OrderStatus) -> str:
        return OrderManagementService.STATUS_EMOJI_MAP.get(status, "❓")

    @staticmethod
    async def update_status(
        order_id: int,
        new_status: OrderStatus | str,
        admin_id: int,
        session: AsyncSession,
        tracking_number: str | None = None
    ) -> OrderDTO:
        """
        Move an order forward (shipped, delivered) or cancel it.

        Cancellation goes through the same path as user cancellation (stock
        release, refund marking). PAID can only be reached through a
        completed payment.

        Args:
            order_id: Order to update
            new_status: Target status
            admin_id: Admin performing the change (audit log)
            session: Database session
            tracking_number: Carrier tracking number, stored when shipping

        Raises:
            OrderNotFoundException: Order missing
            InvalidStateTransitionException: Transition not allowed
            PaymentInProgressException: Cancelling while a payment attempt is running
        """
        try:
            new_status = OrderStatus(new_status)
        except ValueError:
            raise ValidationException("status", f"unknown order status {new_status!r}")

        async with TransactionManager.atomic_transaction(session):
            order = await OrderRepository.get_by_id(order_id, session, for_update=True)
            if order is None:
                raise OrderNotFoundException(order_id)

            if new_status == OrderStatus.CANCELLED:
                order = await OrderService.cancel_within_transaction(order, session, admin_id=admin_id)
            else:
                if OrderStateMachine.is_payment_driven(order.status, new_status):
                    logging.error(f"Admin {admin_id} tried to mark order {order_id} paid without a payment")
                    raise InvalidStateTransitionException(order_id, order.status.value, new_status.value)
                OrderStateMachine.validate_and_log_transition(order_id, order.status, new_status, admin_id=admin_id)

                values = {}
                if new_status == OrderStatus.SHIPPED:
                    values["shipped_at"] = datetime.now()
                    if tracking_number:
                        values["tracking_number"] = tracking_number
                elif new_status == OrderStatus.DELIVERED:
                    values["delivered_at"] = datetime.now()
                await OrderRepository.update_status(order_id, new_status, session, **values)
                order = await OrderRepository.get_by_id(order_id, session)

        logging.info(f"{OrderManagementService.get_status_emoji(order.status)} Admin {admin_id} set order "
                     f"{order_id} to {order.status.value}")
        return order

    @staticmethod
    async def list_orders(
        session: AsyncSession,
        filter_type: OrderFilterType | int | None = OrderFilterType.ALL,
        payment_status: OrderPaymentStatus | str | None = None,
        user_id: int | None = None,
        page: int = 1,
        limit: int | None = None,
        sort_by: OrderSortField = OrderSortField.CREATED_AT,
        descending: bool = True
    ) -> OrderListDTO:
        limit = limit or config.PAGE_ENTRIES
        if page < 1 or limit < 1:
            raise ValidationException("page", "page and limit must be positive")
        query_filter = OrderQueryFilter.from_filter_type(
            filter_type,
            payment_status=OrderPaymentStatus(payment_status) if payment_status else None,
            user_id=user_id,
            sort_by=sort_by,
            descending=descending,
        )
        orders = await OrderRepository.get_filtered(query_filter, page, limit, session)
        total = await OrderRepository.count_filtered(query_filter, session)
        return OrderListDTO(orders=orders, page=page, limit=limit, total=total, pages=math.ceil(total / limit))

    @staticmethod
    async def get_order_detail(order_id: int, session: AsyncSession) -> OrderDetailDTO:
        order = await OrderRepository.get_by_id(order_id, session)
        if order is None:
            raise OrderNotFoundException(order_id)
        return await OrderService.build_order_detail(order, session)
