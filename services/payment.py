import asyncio
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
from exceptions.base import ValidationException
from exceptions.order import OrderNotFoundException, InvalidOrderStateException
from exceptions.payment import (
    PaymentNotFoundException,
    PaymentAlreadyProcessedException,
    InvalidPaymentStateException,
    InvalidPaymentAmountException,
    PaymentInProgressException,
    RefundNotSupportedException,
)
from models.order import OrderDTO
from models.payment import (PaymentDTO, PaymentOutcomeDTO, PaymentMethodInfoDTO, PaymentHistoryDTO,
                            PaymentHistoryItemDTO)
from models.user import PrincipalDTO
from repositories.order import OrderRepository
from repositories.payment import PaymentRepository
from repositories.user import UserRepository
from services.payment_strategies import PaymentStrategy, build_strategy_registry
from services.pricing import PricingService
from utils.order_state_machine import OrderStateMachine
from utils.transaction_manager import TransactionManager

_PAYMENT_METHOD_INFO = (
    (PaymentMethod.CARD, "Credit / Debit Card", "Visa, Mastercard, Mada"),
    (PaymentMethod.BANK_TRANSFER, "Bank Transfer", "Direct transfer from your bank account"),
    (PaymentMethod.WALLET, "Digital Wallet", "Apple Pay, STC Pay and other wallets"),
    (PaymentMethod.CASH, "Cash on Delivery", "Pay the courier when your order arrives"),
    (PaymentMethod.PAY_LATER, "Pay Later", "Buy now and settle the invoice later"),
)


class PaymentService:
    _strategies = None

    @staticmethod
    def get_strategy(method: PaymentMethod) -> PaymentStrategy:
        if PaymentService._strategies is None:
            PaymentService._strategies = build_strategy_registry()
        return PaymentService._strategies[method]

    @staticmethod
    async def _run_with_timeout(coroutine, method: PaymentMethod) -> PaymentOutcomeDTO:
        try:
            return await asyncio.wait_for(coroutine, timeout=config.PAYMENT_GATEWAY_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logging.warning(f"⏱️ Payment gateway timed out after {config.PAYMENT_GATEWAY_TIMEOUT_SECONDS}s ({method.value})")
            return PaymentOutcomeDTO(
                status=PaymentStatus.FAILED,
                gateway_response={"method": method.value, "error": "gateway timeout"},
            )

    @staticmethod
    async def process_payment(
        order_id: int,
        user: PrincipalDTO,
        method: PaymentMethod | str,
        payment_data: dict | None,
        session: AsyncSession
    ) -> tuple[PaymentDTO, OrderDTO]:
        """
        Settle an unpaid order with the chosen method.

        Three steps:
        1. Under the order lock, the attempt is claimed: the untouched pending
           payment seeded by create_order (or a new row for any further attempt)
           moves to processing. While it is processing, other attempts,
           admin confirmations and cancellations of the order are rejected.
        2. The strategy (and any gateway call) runs outside a database
           transaction, with an idempotency key unique to the attempt.
        3. The outcome is persisted atomically:
           - completed: payment completed, order paid, loyalty points credited
           - failed: payment recorded as failed, order untouched
           - pending: payment recorded as pending (cash / pay later)

        Args:
            order_id: Order to pay
            user: Authenticated principal (must own the order)
            method: Payment method
            payment_data: Method-specific instrument data (payment_method_id, wallet_token, ...)
            session: Database session

        Returns:
            Tuple of (payment row, order after settlement)

        Raises:
            ValidationException: Unknown payment method
            OrderNotFoundException: Order missing or owned by someone else
            PaymentAlreadyProcessedException: Order already paid
            PaymentInProgressException: Another attempt for the order is still running
            InvalidOrderStateException: Order is not pending (cancelled, ...)
        """
        try:
            method = PaymentMethod(method)
        except ValueError:
            raise ValidationException("method", f"unsupported payment method {method!r}")
        strategy = PaymentService.get_strategy(method)

        async with TransactionManager.atomic_transaction(session):
            order = await OrderRepository.get_by_id_for_user(order_id, user.id, session, for_update=True)
            if order is None:
                raise OrderNotFoundException(order_id)
            await PaymentService._ensure_payable(order, session)
            payment_id = await PaymentService._claim_attempt(order, method, session)

        try:
            outcome = await PaymentService._run_with_timeout(
                strategy.process(order, payment_data or {}, idempotency_key=f"order-{order.id}-payment-{payment_id}"),
                method
            )
        except Exception:
            async with TransactionManager.atomic_transaction(session):
                await PaymentRepository.transition(
                    payment_id, PaymentStatus.PROCESSING, PaymentStatus.FAILED, session,
                    gateway_response=json.dumps({"method": method.value, "error": "unexpected error"})
                )
            raise

        async with TransactionManager.atomic_transaction(session):
            order = await OrderRepository.get_by_id(order_id, session, for_update=True)
            await PaymentService._finish_attempt(payment_id, outcome, session)
            if outcome.status == PaymentStatus.COMPLETED:
                await PaymentService._settle_order(order, payment_id, session)
            payment = await PaymentRepository.get_by_id(payment_id, session)
            order = await OrderRepository.get_by_id(order_id, session)

        if outcome.status == PaymentStatus.FAILED:
            logging.warning(f"💳 Payment {payment_id} for order {order_id} failed ({method.value}): "
                            f"{outcome.gateway_response.get('error')}")
        else:
            logging.info(f"💳 Payment {payment_id} for order {order_id}: {outcome.status.value} ({method.value})")
        return payment, order

    @staticmethod
    async def _ensure_payable(order: OrderDTO, session: AsyncSession) -> None:
        if order.payment_status == OrderPaymentStatus.PAID or order.status == OrderStatus.PAID:
            raise PaymentAlreadyProcessedException(order.id)
        if order.status != OrderStatus.PENDING:
            raise InvalidOrderStateException(order.id, order.status.value, OrderStatus.PENDING.value)
        in_flight = await PaymentRepository.get_in_flight_for_order(order.id, session)
        if in_flight is not None:
            raise PaymentInProgressException(order.id, in_flight.id)

    @staticmethod
    async def _claim_attempt(order: OrderDTO, method: PaymentMethod, session: AsyncSession) -> int:
        """Mark the attempt processing. Runs under the caller's order lock."""
        payments = await PaymentRepository.get_by_order_id(order.id, session)
        seeded = next((p for p in payments if p.status == PaymentStatus.PENDING and p.transaction_id is None), None)
        if seeded is None:
            return await PaymentRepository.create(
                PaymentDTO(order_id=order.id, amount=order.total_amount, method=method,
                           status=PaymentStatus.PROCESSING),
                session
            )
        if not await PaymentRepository.transition(seeded.id, PaymentStatus.PENDING, PaymentStatus.PROCESSING,
                                                  session, method=method):
            raise PaymentInProgressException(order.id, seeded.id)
        return seeded.id

    @staticmethod
    async def _finish_attempt(payment_id: int, outcome: PaymentOutcomeDTO, session: AsyncSession) -> None:
        values = {
            "transaction_id": outcome.transaction_id,
            "gateway_response": json.dumps(outcome.gateway_response),
        }
        if outcome.status == PaymentStatus.COMPLETED:
            values["completed_at"] = datetime.now()
        if not await PaymentRepository.transition(payment_id, PaymentStatus.PROCESSING, outcome.status,
                                                  session, **values):
            payment = await PaymentRepository.get_by_id(payment_id, session)
            logging.error(f"🚨 Payment {payment_id} left processing before its gateway outcome "
                          f"({outcome.status.value}, transaction {outcome.transaction_id}) was stored")
            raise InvalidPaymentStateException(payment_id, payment.status.value, PaymentStatus.PROCESSING.value)

    @staticmethod
    async def _settle_order(order: OrderDTO, payment_id: int, session: AsyncSession) -> None:
        """Completed payment: order paid + loyalty points. Runs inside the caller's transaction."""
        if order.status != OrderStatus.PENDING or order.payment_status != OrderPaymentStatus.UNPAID:
            # The processing claim keeps this from happening through the services
            logging.error(f"🚨 Payment {payment_id} completed but order {order.id} is "
                          f"{order.status.value}/{order.payment_status.value}; needs manual review")
            return

        OrderStateMachine.validate_and_log_transition(order.id, order.status, OrderStatus.PAID, payment_id=payment_id)
        now = datetime.now()
        await OrderRepository.update_status(order.id, OrderStatus.PAID, session,
                                            payment_status=OrderPaymentStatus.PAID, paid_at=now)

        user = await UserRepository.get_by_id(order.user_id, session)
        points = PricingService.points_earned(order.total_amount, user.membership_tier if user else None)
        if points:
            await UserRepository.add_points(order.user_id, points, session)
        logging.info(f"⭐ User {order.user_id} earned {points} points on order {order.id}")

    @staticmethod
    async def confirm_payment(payment_id: int, admin_id: int, session: AsyncSession) -> tuple[PaymentDTO, OrderDTO]:
        """
        Mark a pending cash / pay-later payment as collected.

        Reuses the completed settlement path: order paid, points credited.
        """
        async with TransactionManager.atomic_transaction(session):
            payment = await PaymentRepository.get_by_id(payment_id, session)
            if payment is None:
                raise PaymentNotFoundException(payment_id)
            if payment.status != PaymentStatus.PENDING:
                raise InvalidPaymentStateException(payment_id, payment.status.value, PaymentStatus.PENDING.value)
            order = await OrderRepository.get_by_id(payment.order_id, session, for_update=True)
            await PaymentService._ensure_payable(order, session)

            if not await PaymentRepository.transition(payment_id, PaymentStatus.PENDING, PaymentStatus.COMPLETED,
                                                      session, completed_at=datetime.now()):
                raise InvalidPaymentStateException(payment_id, "changed", PaymentStatus.PENDING.value)
            await PaymentService._settle_order(order, payment_id, session)
            payment = await PaymentRepository.get_by_id(payment_id, session)
            order = await OrderRepository.get_by_id(order.id, session)

        logging.info(f"✅ Admin {admin_id} confirmed payment {payment_id} for order {order.id}")
        return payment, order

    @staticmethod
    async def refund_payment(
        payment_id: int,
        session: AsyncSession,
        amount: float | None = None,
        reason: str | None = None,
        user_id: int | None = None
    ) -> tuple[PaymentDTO, PaymentOutcomeDTO]:
        """
        Refund a completed payment, fully or partially.

        The payment is claimed (completed -> refunding) before the gateway is
        called, so concurrent refunds of one payment reach the gateway once.
        A failed or timed out refund puts it back to completed.

        Args:
            payment_id: Payment to refund
            session: Database session
            amount: Refund amount, defaults to the full payment amount
            reason: Free-text reason stored with the gateway response
            user_id: When given, the payment's order must belong to this user

        Returns:
            Tuple of (payment after the attempt, refund outcome). A failed
            outcome leaves the payment completed.

        Raises:
            PaymentNotFoundException: Payment missing (or not the user's)
            InvalidPaymentStateException: Payment is not completed (or already being refunded)
            InvalidPaymentAmountException: amount <= 0 or above the payment amount
            RefundNotSupportedException: Cash and pay-later payments
        """
        async with TransactionManager.atomic_transaction(session):
            payment = await PaymentRepository.get_by_id(payment_id, session)
            if payment is None:
                raise PaymentNotFoundException(payment_id)
            if user_id is not None:
                order = await OrderRepository.get_by_id_for_user(payment.order_id, user_id, session)
                if order is None:
                    raise PaymentNotFoundException(payment_id)
            if payment.status != PaymentStatus.COMPLETED:
                raise InvalidPaymentStateException(payment_id, payment.status.value, PaymentStatus.COMPLETED.value)

            refund_amount = payment.amount if amount is None else amount
            if refund_amount is None or math.isnan(refund_amount) or refund_amount <= 0:
                raise InvalidPaymentAmountException(refund_amount, "must be greater than zero")
            if refund_amount > payment.amount:
                raise InvalidPaymentAmountException(refund_amount, f"exceeds payment amount {payment.amount}")

            strategy = PaymentService.get_strategy(payment.method)
            if not strategy.refundable:
                raise RefundNotSupportedException(payment.method.value)
            if not await PaymentRepository.transition(payment_id, PaymentStatus.COMPLETED, PaymentStatus.REFUNDING,
                                                      session):
                raise InvalidPaymentStateException(payment_id, "changed", PaymentStatus.COMPLETED.value)

        try:
            outcome = await PaymentService._run_with_timeout(
                strategy.refund(payment, refund_amount, idempotency_key=f"refund-{payment_id}"), payment.method
            )
        except Exception:
            async with TransactionManager.atomic_transaction(session):
                await PaymentRepository.transition(payment_id, PaymentStatus.REFUNDING, PaymentStatus.COMPLETED,
                                                   session)
            raise

        if outcome.status != PaymentStatus.REFUNDED:
            async with TransactionManager.atomic_transaction(session):
                await PaymentRepository.transition(payment_id, PaymentStatus.REFUNDING, PaymentStatus.COMPLETED,
                                                   session)
                payment = await PaymentRepository.get_by_id(payment_id, session)
            logging.warning(f"↩️ Refund of payment {payment_id} failed: {outcome.gateway_response.get('error')}")
            return payment, outcome

        gateway_response = json.loads(payment.gateway_response) if payment.gateway_response else {}
        gateway_response["refund"] = {**outcome.gateway_response, "reason": reason}
        async with TransactionManager.atomic_transaction(session):
            now = datetime.now()
            if not await PaymentRepository.transition(payment_id, PaymentStatus.REFUNDING, PaymentStatus.REFUNDED,
                                                      session, refunded_amount=refund_amount, refunded_at=now,
                                                      gateway_response=json.dumps(gateway_response)):
                logging.error(f"🚨 Payment {payment_id} left refunding before refund "
                              f"{outcome.gateway_response.get('refund_id')} was stored")
                raise InvalidPaymentStateException(payment_id, "changed", PaymentStatus.REFUNDING.value)
            await OrderRepository.update_payment_status(payment.order_id, OrderPaymentStatus.REFUNDED, session)
            payment = await PaymentRepository.get_by_id(payment_id, session)

        logging.info(f"↩️ Payment {payment_id} refunded {refund_amount:.2f} (order {payment.order_id})")
        return payment, outcome

    @staticmethod
    async def list_payments(user_id: int, session: AsyncSession, status: PaymentStatus | None = None,
                            page: int = 1, limit: int | None = None) -> PaymentHistoryDTO:
        limit = limit or config.PAGE_ENTRIES
        if page < 1 or limit < 1:
            raise ValidationException("page", "page and limit must be positive")
        status = PaymentStatus(status) if status else None
        rows = await PaymentRepository.get_for_user(user_id, status, page, limit, session)
        total = await PaymentRepository.count_for_user(user_id, status, session)
        return PaymentHistoryDTO(
            payments=[PaymentHistoryItemDTO(**payment.model_dump(), order_number=order_number)
                      for payment, order_number in rows],
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit),
        )

    @staticmethod
    def get_payment_methods() -> list[PaymentMethodInfoDTO]:
        gateway_configured = bool(config.PAYMENT_GATEWAY_URL)
        return [
            PaymentMethodInfoDTO(
                id=method,
                name=name,
                description=description,
                enabled=gateway_configured or method.is_deferred(),
                refundable=not method.is_deferred(),
            )
            for method, name, description in _PAYMENT_METHOD_INFO
        ]
