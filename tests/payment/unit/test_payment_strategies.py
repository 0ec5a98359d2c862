"""
Unit Tests: payment strategies and the gateway client payloads

Strategies get an AsyncMock gateway; the client tests patch
fetch_api_request so no request leaves the process.
"""

from unittest.mock import AsyncMock, patch

import pytest

from enums.currency import Currency
from enums.payment_method import PaymentMethod
from enums.payment_status import PaymentStatus
from exceptions.payment import PaymentGatewayException, RefundNotSupportedException
from models.order import OrderDTO
from models.payment import PaymentDTO
from services.payment_gateway import PaymentGatewayClient
from services.payment_strategies import (BankTransferPaymentStrategy, CardPaymentStrategy, CashPaymentStrategy,
                                         PayLaterPaymentStrategy, WalletPaymentStrategy, build_strategy_registry)


@pytest.fixture
def order():
    return OrderDTO(id=1, user_id=1, order_number="SBR-TEST-00001", total_amount=199.99, currency=Currency.SAR)


@pytest.fixture
def gateway():
    gateway = AsyncMock(spec=PaymentGatewayClient)
    gateway.create_or_confirm_charge.return_value = {"id": "ch_1", "status": "succeeded"}
    gateway.refund.return_value = {"id": "re_1", "status": "succeeded"}
    return gateway


class TestGatewayStrategies:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("strategy_class,payment_data,token", [
        (CardPaymentStrategy, {"payment_intent_id": "pi_abc"}, "pi_abc"),
        (BankTransferPaymentStrategy, {"account_token": "acct_1"}, "acct_1"),
        (WalletPaymentStrategy, {"wallet_id": "stcpay_42"}, "stcpay_42"),
    ])
    async def test_accepted_instrument_fields(self, order, gateway, strategy_class, payment_data, token):
        outcome = await strategy_class(gateway).process(order, payment_data)

        gateway.create_or_confirm_charge.assert_awaited_once_with(199.99, "SAR", token, strategy_class.method.value,
                                                                  idempotency_key=None)
        assert outcome.status == PaymentStatus.COMPLETED
        assert outcome.transaction_id == "ch_1"

    @pytest.mark.asyncio
    async def test_idempotency_key_forwarded(self, order, gateway):
        payment = PaymentDTO(id=7, order_id=1, method=PaymentMethod.CARD, amount=199.99,
                             status=PaymentStatus.COMPLETED, transaction_id="ch_1")

        await CardPaymentStrategy(gateway).process(order, {"payment_method_id": "pm_1"},
                                                   idempotency_key="order-1-payment-7")
        await CardPaymentStrategy(gateway).refund(payment, 50.0, idempotency_key="refund-7")

        assert gateway.create_or_confirm_charge.await_args.kwargs["idempotency_key"] == "order-1-payment-7"
        gateway.refund.assert_awaited_once_with("ch_1", 50.0, idempotency_key="refund-7")

    @pytest.mark.asyncio
    async def test_first_token_field_wins(self, order, gateway):
        await CardPaymentStrategy(gateway).process(order, {"payment_method_id": "pm_1", "payment_intent_id": "pi_1"})

        assert gateway.create_or_confirm_charge.await_args.args[2] == "pm_1"

    @pytest.mark.asyncio
    async def test_gateway_exception_becomes_failed_outcome(self, order, gateway):
        gateway.create_or_confirm_charge.side_effect = PaymentGatewayException("timeout talking to acquirer")

        outcome = await WalletPaymentStrategy(gateway).process(order, {"wallet_token": "w_1"})

        assert outcome.status == PaymentStatus.FAILED
        assert outcome.gateway_response["error"] == "timeout talking to acquirer"
        assert outcome.gateway_response["method"] == "wallet"

    @pytest.mark.asyncio
    async def test_refund_without_charge_id_fails(self, gateway):
        payment = PaymentDTO(id=1, order_id=1, method=PaymentMethod.CARD, amount=10.0,
                             status=PaymentStatus.COMPLETED)

        outcome = await CardPaymentStrategy(gateway).refund(payment, 10.0)

        assert outcome.status == PaymentStatus.FAILED
        gateway.refund.assert_not_awaited()


class TestDeferredStrategies:

    @pytest.mark.asyncio
    async def test_cash_is_pending(self, order):
        outcome = await CashPaymentStrategy().process(order, {})

        assert outcome.status == PaymentStatus.PENDING
        assert outcome.transaction_id.startswith("CASH_")
        assert outcome.gateway_response["method"] == "cash"

    @pytest.mark.asyncio
    async def test_pay_later_refund_not_supported(self):
        payment = PaymentDTO(id=1, method=PaymentMethod.PAY_LATER, amount=50.0, status=PaymentStatus.COMPLETED)

        with pytest.raises(RefundNotSupportedException):
            await PayLaterPaymentStrategy().refund(payment, 50.0)

    def test_registry_covers_every_method(self, gateway):
        registry = build_strategy_registry(gateway)

        assert set(registry) == set(PaymentMethod)
        assert registry[PaymentMethod.CARD].gateway is gateway
        assert registry[PaymentMethod.CASH].refundable is False
        with pytest.raises(TypeError):
            registry[PaymentMethod.CARD] = None


class TestGatewayClient:

    @pytest.mark.asyncio
    async def test_charge_payload_in_minor_units(self):
        client = PaymentGatewayClient(base_url="https://gateway.test/", api_key="sk_test")

        with patch.object(client, "fetch_api_request", new=AsyncMock(return_value={"id": "ch_1"})) as fetch:
            await client.create_or_confirm_charge(199.99, "SAR", "pm_1", "card")

        fetch.assert_awaited_once_with("POST", "/charges", {
            "amount": 19999,
            "currency": "sar",
            "payment_method": "pm_1",
            "method": "card",
            "confirm": True,
        }, idempotency_key=None)
        assert client.base_url == "https://gateway.test"

    @pytest.mark.asyncio
    async def test_refund_payload(self):
        client = PaymentGatewayClient(base_url="https://gateway.test", api_key="sk_test")

        with patch.object(client, "fetch_api_request", new=AsyncMock(return_value={"id": "re_1"})) as fetch:
            await client.refund("ch_1", 12.5)

        fetch.assert_awaited_once_with("POST", "/refunds", {"charge": "ch_1", "amount": 1250},
                                      idempotency_key=None)

    @pytest.mark.asyncio
    async def test_idempotency_key_passed_to_request(self):
        client = PaymentGatewayClient(base_url="https://gateway.test", api_key="sk_test")

        with patch.object(client, "fetch_api_request", new=AsyncMock(return_value={"id": "ch_1"})) as fetch:
            await client.create_or_confirm_charge(10.0, "SAR", "pm_1", "card",
                                                  idempotency_key="order-3-payment-9")

        assert fetch.await_args.kwargs == {"idempotency_key": "order-3-payment-9"}

    @pytest.mark.asyncio
    async def test_unconfigured_gateway_raises(self):
        client = PaymentGatewayClient(base_url="", api_key="")

        with pytest.raises(PaymentGatewayException):
            await client.create_or_confirm_charge(10.0, "SAR", "pm_1")
