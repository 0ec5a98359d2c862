"""
Unit Tests: PaymentService.refund_payment

A refund claims the payment (completed -> refunding) before the gateway is
called; every way the gateway call can end releases or settles that claim.
"""

import asyncio
import json
from unittest.mock import patch, AsyncMock

import pytest

from enums.order_payment_status import OrderPaymentStatus
from enums.order_status import OrderStatus
from enums.payment_method import PaymentMethod
from enums.payment_status import PaymentStatus
from enums.product_type import ProductType
from exceptions.payment import (PaymentNotFoundException, InvalidPaymentStateException,
                                InvalidPaymentAmountException, RefundNotSupportedException,
                                PaymentGatewayException)
from repositories.order import OrderRepository
from repositories.payment import PaymentRepository
from services.cart import CartService
from services.order import OrderService
from services.payment import PaymentService
from services.payment_gateway import PaymentGatewayClient


async def paid_card_order(session, shop):
    await CartService.add_or_increment(shop.customer.id, ProductType.PART, shop.exhaust_id, 2, session)
    await CartService.add_or_increment(shop.customer.id, ProductType.PART, shop.brake_pads_id, 1, session)
    order, _ = await OrderService.create_order(shop.customer, shop.address_id, PaymentMethod.CARD, None, session)
    charge = AsyncMock(return_value={"id": "ch_123", "status": "succeeded"})
    with patch.object(PaymentGatewayClient, "create_or_confirm_charge", new=charge):
        payment, order = await PaymentService.process_payment(
            order.id, shop.customer, PaymentMethod.CARD, {"payment_method_id": "pm_abcdefgh12345"}, session
        )
    return order, payment


def refund_returning(body):
    return patch.object(PaymentGatewayClient, "refund", new=AsyncMock(return_value=body))


class TestRefund:

    @pytest.mark.asyncio
    async def test_full_refund(self, test_session, shop):
        order, payment = await paid_card_order(test_session, shop)

        with refund_returning({"id": "re_1", "status": "succeeded"}) as refund:
            refunded, outcome = await PaymentService.refund_payment(payment.id, test_session,
                                                                    reason="customer request")

        refund.assert_awaited_once_with("ch_123", 320.0, idempotency_key=f"refund-{payment.id}")
        assert outcome.status == PaymentStatus.REFUNDED
        assert refunded.status == PaymentStatus.REFUNDED
        assert refunded.refunded_amount == 320.0
        assert refunded.refunded_at is not None
        stored = json.loads(refunded.gateway_response)
        assert stored["charge_id"] == "ch_123"
        assert stored["refund"]["refund_id"] == "re_1"
        assert stored["refund"]["reason"] == "customer request"

        order = await OrderRepository.get_by_id(order.id, test_session)
        assert order.payment_status == OrderPaymentStatus.REFUNDED
        # Refunds never move the order status
        assert order.status == OrderStatus.PAID

    @pytest.mark.asyncio
    async def test_partial_refund(self, test_session, shop):
        _, payment = await paid_card_order(test_session, shop)

        with refund_returning({"id": "re_2", "status": "succeeded"}):
            refunded, _ = await PaymentService.refund_payment(payment.id, test_session, amount=100.0)

        assert refunded.refunded_amount == 100.0
        assert refunded.amount == 320.0

    @pytest.mark.asyncio
    async def test_owner_may_refund(self, test_session, shop):
        _, payment = await paid_card_order(test_session, shop)

        with refund_returning({"id": "re_3", "status": "refunded"}):
            refunded, _ = await PaymentService.refund_payment(payment.id, test_session, user_id=shop.customer.id)

        assert refunded.status == PaymentStatus.REFUNDED

    @pytest.mark.asyncio
    async def test_other_user_cannot_refund(self, test_session, shop):
        _, payment = await paid_card_order(test_session, shop)

        with pytest.raises(PaymentNotFoundException):
            await PaymentService.refund_payment(payment.id, test_session, user_id=shop.other.id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -5.0, 320.01])
    async def test_amount_out_of_range(self, test_session, shop, amount):
        _, payment = await paid_card_order(test_session, shop)

        with refund_returning({"id": "re_4", "status": "succeeded"}) as refund:
            with pytest.raises(InvalidPaymentAmountException):
                await PaymentService.refund_payment(payment.id, test_session, amount=amount)

        refund.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_gateway_failure_leaves_payment_completed(self, test_session, shop):
        order, payment = await paid_card_order(test_session, shop)
        failing = AsyncMock(side_effect=PaymentGatewayException("HTTP 500", status_code=500))

        with patch.object(PaymentGatewayClient, "refund", new=failing):
            unchanged, outcome = await PaymentService.refund_payment(payment.id, test_session)

        assert outcome.status == PaymentStatus.FAILED
        assert unchanged.status == PaymentStatus.COMPLETED
        stored = await PaymentRepository.get_by_id(payment.id, test_session)
        assert stored.status == PaymentStatus.COMPLETED
        assert stored.refunded_amount is None
        order = await OrderRepository.get_by_id(order.id, test_session)
        assert order.payment_status == OrderPaymentStatus.PAID


class TestRefundGuards:

    @pytest.mark.asyncio
    async def test_missing_payment(self, test_session, shop):
        with pytest.raises(PaymentNotFoundException):
            await PaymentService.refund_payment(12345, test_session)

    @pytest.mark.asyncio
    async def test_pending_payment_not_refundable(self, test_session, shop):
        await CartService.add_or_increment(shop.customer.id, ProductType.PART, shop.exhaust_id, 1, test_session)
        _, payment = await OrderService.create_order(shop.customer, shop.address_id, PaymentMethod.CARD, None,
                                                     test_session)

        with pytest.raises(InvalidPaymentStateException):
            await PaymentService.refund_payment(payment.id, test_session)

    @pytest.mark.asyncio
    async def test_cash_refund_not_supported(self, test_session, shop):
        await CartService.add_or_increment(shop.customer.id, ProductType.PART, shop.exhaust_id, 1, test_session)
        order, _ = await OrderService.create_order(shop.customer, shop.address_id, PaymentMethod.CASH, None,
                                                   test_session)
        payment, _ = await PaymentService.process_payment(order.id, shop.customer, PaymentMethod.CASH, None,
                                                          test_session)
        await PaymentService.confirm_payment(payment.id, shop.admin.id, test_session)

        with pytest.raises(RefundNotSupportedException):
            await PaymentService.refund_payment(payment.id, test_session)


class TestRefundClaim:

    @pytest.mark.asyncio
    async def test_refund_in_progress_rejected(self, test_session, shop):
        _, payment = await paid_card_order(test_session, shop)
        await PaymentRepository.transition(payment.id, PaymentStatus.COMPLETED, PaymentStatus.REFUNDING,
                                           test_session)
        await test_session.commit()

        with refund_returning({"id": "re_5", "status": "succeeded"}) as refund:
            with pytest.raises(InvalidPaymentStateException) as exc_info:
                await PaymentService.refund_payment(payment.id, test_session)

        refund.assert_not_awaited()
        assert exc_info.value.current_state == "refunding"

    @pytest.mark.asyncio
    async def test_timed_out_refund_restores_completed(self, test_session, shop):
        order, payment = await paid_card_order(test_session, shop)

        async def hang(*args, **kwargs):
            await asyncio.sleep(5)

        with patch("config.PAYMENT_GATEWAY_TIMEOUT_SECONDS", 0.05):
            with patch.object(PaymentGatewayClient, "refund", new=AsyncMock(side_effect=hang)):
                unchanged, outcome = await PaymentService.refund_payment(payment.id, test_session)

        assert outcome.status == PaymentStatus.FAILED
        assert unchanged.status == PaymentStatus.COMPLETED
        order = await OrderRepository.get_by_id(order.id, test_session)
        assert order.payment_status == OrderPaymentStatus.PAID

    @pytest.mark.asyncio
    async def test_unexpected_error_restores_completed(self, test_session, shop):
        _, payment = await paid_card_order(test_session, shop)

        with patch.object(PaymentGatewayClient, "refund", new=AsyncMock(side_effect=RuntimeError("boom"))):
            with pytest.raises(RuntimeError):
                await PaymentService.refund_payment(payment.id, test_session)

        restored = await PaymentRepository.get_by_id(payment.id, test_session)
        assert restored.status == PaymentStatus.COMPLETED
        with refund_returning({"id": "re_6", "status": "succeeded"}):
            refunded, _ = await PaymentService.refund_payment(payment.id, test_session)
        assert refunded.status == PaymentStatus.REFUNDED

    @pytest.mark.asyncio
    async def test_refunded_payment_cannot_be_refunded_again(self, test_session, shop):
        _, payment = await paid_card_order(test_session, shop)
        with refund_returning({"id": "re_7", "status": "succeeded"}) as refund:
            await PaymentService.refund_payment(payment.id, test_session, amount=50.0)

            with pytest.raises(InvalidPaymentStateException):
                await PaymentService.refund_payment(payment.id, test_session, amount=50.0)

        assert refund.await_count == 1
