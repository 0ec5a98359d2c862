from datetime import datetime
import json
import logging
import math

from sqlalchemy.ext.asyncio import AsyncSession

import config
from enums.order_payment_status import OrderPaymentStatus
from enums.order_status import OrderStatus
from enums.payment_method import PaymentMethod
from enums.payment_status import PaymentStatus
from exceptions.address import AddressNotFoundException
from exceptions.base import ValidationException
from exceptions.order import (OrderNotFoundException, InvalidStateTransitionException,
                              OrderNumberGenerationException)
from exceptions.payment import PaymentInProgressException
from models.order import (OrderDTO, OrderDetailDTO, OrderItemDetailDTO, OrderListDTO, OrderTrackingDTO,
                          TrackingStepDTO)
from models.orderItem import OrderItemDTO
from models.payment import PaymentDTO
from models.product import ProductRef
from models.user import PrincipalDTO
from repositories.address import AddressRepository
from repositories.cartItem import CartItemRepository
from repositories.order import OrderRepository
from repositories.orderItem import OrderItemRepository
from repositories.payment import PaymentRepository
from repositories.product import ProductRepository
from services.cart import CartService
from services.inventory import InventoryService
from services.pricing import PricingService
from utils.order_filters import OrderQueryFilter
from utils.order_number import generate_order_number
from utils.order_state_machine import OrderStateMachine
from utils.transaction_manager import TransactionManager

_TIMELINE = (
    (OrderStatus.PENDING, "Order Placed", "created_at"),
    (OrderStatus.PAID, "Payment Confirmed", "paid_at"),
    (OrderStatus.SHIPPED, "Shipped", "shipped_at"),
    (OrderStatus.DELIVERED, "Delivered", "delivered_at"),
)


class OrderService:

    @staticmethod
    async def create_order(
        user: PrincipalDTO,
        shipping_address_id: int,
        payment_method: PaymentMethod | str,
        notes: str | None,
        session: AsyncSession
    ) -> tuple[OrderDTO, PaymentDTO]:
        """
        Turns the user's cart into an order in one transaction.

        Flow:
        1. Address must belong to the user
        2. Cart must not be empty
        3. Every line re-validated against live stock
        4. subtotal, weight, shipping and total computed (no membership discount)
        5. Order, items, pending payment, stock decrement and cart clear written atomically

        Args:
            user: Authenticated principal
            shipping_address_id: Address to ship to (snapshotted onto the order)
            payment_method: Method the seeded pending payment will use
            notes: Optional customer notes
            session: Database session

        Returns:
            Tuple of (order, pending payment)

        Raises:
            ValidationException: Unknown payment method
            AddressNotFoundException: Address missing or not owned
            EmptyCartException: Cart has no lines
            InsufficientStockException: A line exceeds stock (nothing is written)
        """
        try:
            payment_method = PaymentMethod(payment_method)
        except ValueError:
            raise ValidationException("payment_method", f"unsupported payment method {payment_method!r}")

        return await OrderService._create_order_transaction(
            user, shipping_address_id, payment_method, notes, session
        )

    @staticmethod
    @TransactionManager.with_retry()
    async def _create_order_transaction(
        user: PrincipalDTO,
        shipping_address_id: int,
        payment_method: PaymentMethod,
        notes: str | None,
        session: AsyncSession
    ) -> tuple[OrderDTO, PaymentDTO]:
        # IntegrityError (order number race) and OperationalError (lock contention)
        # roll the whole attempt back and retry it from scratch
        async with TransactionManager.atomic_transaction(session):
            address = await AddressRepository.get_for_user(shipping_address_id, user.id, session)
            if address is None:
                raise AddressNotFoundException(shipping_address_id)

            lines = await CartService.load_checkout_lines(user.id, session, for_update=True)

            subtotal = round(sum(line.line_total for line in lines), 2)
            total_weight = sum(line.weight * line.quantity for line in lines)
            shipping_cost = PricingService.shipping_cost(address.country, total_weight)
            total_amount = round(subtotal + shipping_cost, 2)

            order_number = await OrderService._generate_unique_order_number(session)
            order_id = await OrderRepository.create(OrderDTO(
                user_id=user.id,
                order_number=order_number,
                status=OrderStatus.PENDING,
                payment_status=OrderPaymentStatus.UNPAID,
                subtotal=subtotal,
                shipping_cost=shipping_cost,
                total_amount=total_amount,
                currency=config.CURRENCY,
                shipping_address_id=address.id,
                shipping_address_snapshot=json.dumps(address.to_snapshot()),
                notes=notes,
            ), session)

            await OrderItemRepository.create_many([
                OrderItemDTO(
                    order_id=order_id,
                    product_type=line.product_type,
                    product_id=line.product_id,
                    quantity=line.quantity,
                    price=line.unit_price,
                ) for line in lines
            ], session)

            payment_id = await PaymentRepository.create(PaymentDTO(
                order_id=order_id,
                method=payment_method,
                amount=total_amount,
                status=PaymentStatus.PENDING,
            ), session)

            await InventoryService.reserve(
                [(ProductRef(line.product_type, line.product_id), line.quantity) for line in lines], session
            )
            await CartItemRepository.clear(user.id, session)

            order = await OrderRepository.get_by_id(order_id, session)
            payment = await PaymentRepository.get_by_id(payment_id, session)

        logging.info(f"✅ Order {order.order_number} (id {order.id}) created for user {user.id}: "
                     f"subtotal {subtotal:.2f} + shipping {shipping_cost:.2f} = {total_amount:.2f} {order.currency.value}")
        return order, payment

    @staticmethod
    async def _generate_unique_order_number(session: AsyncSession) -> str:
        for _ in range(config.ORDER_NUMBER_MAX_ATTEMPTS):
            order_number = generate_order_number()
            if not await OrderRepository.order_number_exists(order_number, session):
                return order_number
            logging.warning(f"⚠️ Order number collision on {order_number}, regenerating")
        raise OrderNumberGenerationException(config.ORDER_NUMBER_MAX_ATTEMPTS)

    @staticmethod
    async def cancel_order(order_id: int, user_id: int, session: AsyncSession) -> OrderDTO:
        """
        Cancel a pending or paid order owned by the user.

        Stock for every item is released and completed payments are marked
        refunded, all in one transaction.

        Raises:
            OrderNotFoundException: Order missing or owned by someone else
            InvalidStateTransitionException: Order is shipped, delivered or already cancelled (nothing written)
            PaymentInProgressException: A payment attempt is waiting on the gateway (nothing written)
        """
        async with TransactionManager.atomic_transaction(session):
            order = await OrderRepository.get_by_id_for_user(order_id, user_id, session, for_update=True)
            if order is None:
                raise OrderNotFoundException(order_id)
            order = await OrderService.cancel_within_transaction(order, session, user_id=user_id)
        return order

    @staticmethod
    async def cancel_within_transaction(order: OrderDTO, session: AsyncSession,
                                        user_id: int | None = None, admin_id: int | None = None) -> OrderDTO:
        """
        Cancellation writes shared by user and admin cancellation.

        Must run inside the caller's transaction; does not commit.
        """
        if not OrderStateMachine.is_cancellable(order.status):
            raise InvalidStateTransitionException(order.id, order.status.value, OrderStatus.CANCELLED.value)
        in_flight = await PaymentRepository.get_in_flight_for_order(order.id, session)
        if in_flight is not None:
            raise PaymentInProgressException(order.id, in_flight.id)
        OrderStateMachine.validate_and_log_transition(
            order.id, order.status, OrderStatus.CANCELLED, admin_id=admin_id, user_id=user_id
        )

        order_items = await OrderItemRepository.get_by_order_id(order.id, session)
        await OrderRepository.update_status(order.id, OrderStatus.CANCELLED, session, cancelled_at=datetime.now())
        await InventoryService.release(
            [(ProductRef(item.product_type, item.product_id), item.quantity) for item in order_items], session
        )

        refunded_count = await PaymentRepository.refund_completed_for_order(order.id, session)
        if refunded_count:
            await OrderRepository.update_payment_status(order.id, OrderPaymentStatus.REFUNDED, session)
            logging.info(f"💸 Order {order.id}: {refunded_count} completed payment(s) marked refunded")

        logging.info(f"❌ Order {order.id} cancelled, {len(order_items)} item line(s) returned to stock")
        return await OrderRepository.get_by_id(order.id, session)

    @staticmethod
    async def get_order(order_id: int, user_id: int, session: AsyncSession) -> OrderDetailDTO:
        """
        Order with items (joined to the live catalog), payment history
        (newest first) and the address snapshot. Read-only.
        """
        order = await OrderRepository.get_by_id_for_user(order_id, user_id, session)
        if order is None:
            raise OrderNotFoundException(order_id)
        return await OrderService.build_order_detail(order, session)

    @staticmethod
    async def build_order_detail(order: OrderDTO, session: AsyncSession) -> OrderDetailDTO:
        order_items = await OrderItemRepository.get_by_order_id(order.id, session)
        products = await ProductRepository.get_many(
            [ProductRef(item.product_type, item.product_id) for item in order_items], session
        )
        items = []
        for item in order_items:
            product = products.get(ProductRef(item.product_type, item.product_id))
            items.append(OrderItemDetailDTO(
                id=item.id,
                product_type=item.product_type.value,
                product_id=item.product_id,
                quantity=item.quantity,
                price=item.price,
                line_total=round(item.price * item.quantity, 2),
                name=product.name if product else None,
                images=product.images if product else [],
                brand_name=product.brand_name if product else None,
            ))

        payments = await PaymentRepository.get_by_order_id(order.id, session)
        shipping_address = json.loads(order.shipping_address_snapshot) if order.shipping_address_snapshot else None
        return OrderDetailDTO(order=order, items=items, payments=payments, shipping_address=shipping_address)

    @staticmethod
    async def list_orders(user_id: int, session: AsyncSession, status: OrderStatus | None = None,
                          page: int = 1, limit: int | None = None) -> OrderListDTO:
        limit = limit or config.PAGE_ENTRIES
        if page < 1 or limit < 1:
            raise ValidationException("page", "page and limit must be positive")
        query_filter = OrderQueryFilter(user_id=user_id, statuses=[OrderStatus(status)] if status else None)
        orders = await OrderRepository.get_filtered(query_filter, page, limit, session)
        total = await OrderRepository.count_filtered(query_filter, session)
        return OrderListDTO(orders=orders, page=page, limit=limit, total=total, pages=math.ceil(total / limit))

    @staticmethod
    async def track_order(order_id: int, user_id: int, session: AsyncSession) -> OrderTrackingDTO:
        order = await OrderRepository.get_by_id_for_user(order_id, user_id, session)
        if order is None:
            raise OrderNotFoundException(order_id)

        statuses = [status for status, _, _ in _TIMELINE]
        current_index = statuses.index(order.status) if order.status in statuses else -1
        timeline = []
        for index, (status, label, date_field) in enumerate(_TIMELINE):
            date = getattr(order, date_field)
            if order.status == OrderStatus.CANCELLED:
                completed = date is not None
            else:
                completed = index <= current_index
            timeline.append(TrackingStepDTO(
                status=status.value,
                label=label,
                date=date,
                completed=completed,
                current=index == current_index,
            ))
        if order.status == OrderStatus.CANCELLED:
            timeline.append(TrackingStepDTO(
                status=OrderStatus.CANCELLED.value,
                label="Cancelled",
                date=order.cancelled_at,
                completed=True,
                current=True,
            ))

        return OrderTrackingDTO(
            order_number=order.order_number,
            status=order.status,
            tracking_number=order.tracking_number,
            timeline=timeline,
        )
