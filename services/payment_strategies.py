"""
Payment strategies, one per PaymentMethod.

Each strategy turns (order, payment_data) into a normalized PaymentOutcomeDTO.
Gateway strategies never let PaymentGatewayException escape: any gateway
error becomes a failed outcome. Only whitelisted fields of the gateway body
end up in gateway_response, so card data and secrets are never persisted.
"""
import time
from types import MappingProxyType

from enums.payment_method import PaymentMethod
from enums.payment_status import PaymentStatus
from exceptions.payment import PaymentGatewayException, RefundNotSupportedException
from models.order import OrderDTO
from models.payment import PaymentDTO, PaymentOutcomeDTO
from services.payment_gateway import PaymentGatewayClient

CHARGE_SUCCESS_STATUSES = frozenset({"succeeded", "completed", "paid"})
REFUND_SUCCESS_STATUSES = frozenset({"succeeded", "completed", "refunded"})


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class PaymentStrategy:
    method: PaymentMethod
    refundable: bool = True

    async def process(self, order: OrderDTO, payment_data: dict,
                      idempotency_key: str | None = None) -> PaymentOutcomeDTO:
        raise NotImplementedError

    async def refund(self, payment: PaymentDTO, amount: float,
                     idempotency_key: str | None = None) -> PaymentOutcomeDTO:
        raise NotImplementedError


class GatewayPaymentStrategy(PaymentStrategy):
    """Charges through the external gateway; token_fields name the accepted instrument handles."""
    token_fields: tuple[str, ...] = ()

    def __init__(self, gateway: PaymentGatewayClient):
        self.gateway = gateway

    def _failed(self, error: str, **extra) -> PaymentOutcomeDTO:
        return PaymentOutcomeDTO(
            status=PaymentStatus.FAILED,
            transaction_id=extra.pop("charge_id", None),
            gateway_response={"method": self.method.value, "error": error, **extra},
        )

    async def process(self, order: OrderDTO, payment_data: dict,
                      idempotency_key: str | None = None) -> PaymentOutcomeDTO:
        payment_data = payment_data or {}
        method_token = next((payment_data[field] for field in self.token_fields if payment_data.get(field)), None)
        if not method_token:
            return self._failed(f"missing one of: {', '.join(self.token_fields)}")

        try:
            body = await self.gateway.create_or_confirm_charge(
                order.total_amount, order.currency.value, method_token, self.method.value,
                idempotency_key=idempotency_key
            )
        except PaymentGatewayException as e:
            return self._failed(e.reason, status_code=e.status_code)

        gateway_status = str(body.get("status", "")).lower()
        charge_id = body.get("id")
        if gateway_status in CHARGE_SUCCESS_STATUSES:
            return PaymentOutcomeDTO(
                status=PaymentStatus.COMPLETED,
                transaction_id=charge_id,
                gateway_response={"method": self.method.value, "gateway_status": gateway_status, "charge_id": charge_id},
            )
        return self._failed(f"charge not successful: {gateway_status or 'unknown'}",
                            charge_id=charge_id, gateway_status=gateway_status)

    async def refund(self, payment: PaymentDTO, amount: float,
                     idempotency_key: str | None = None) -> PaymentOutcomeDTO:
        if not payment.transaction_id:
            return self._failed("payment has no gateway charge id")
        try:
            body = await self.gateway.refund(payment.transaction_id, amount, idempotency_key=idempotency_key)
        except PaymentGatewayException as e:
            return self._failed(e.reason, status_code=e.status_code)

        gateway_status = str(body.get("status", "")).lower()
        if gateway_status in REFUND_SUCCESS_STATUSES:
            return PaymentOutcomeDTO(
                status=PaymentStatus.REFUNDED,
                transaction_id=payment.transaction_id,
                gateway_response={"method": self.method.value, "refund_id": body.get("id"),
                                  "gateway_status": gateway_status, "amount": amount},
            )
        return self._failed(f"refund not successful: {gateway_status or 'unknown'}", gateway_status=gateway_status)


class CardPaymentStrategy(GatewayPaymentStrategy):
    method = PaymentMethod.CARD
    token_fields = ("payment_method_id", "payment_intent_id")


class BankTransferPaymentStrategy(GatewayPaymentStrategy):
    method = PaymentMethod.BANK_TRANSFER
    token_fields = ("bank_account_token", "account_token")


class WalletPaymentStrategy(GatewayPaymentStrategy):
    method = PaymentMethod.WALLET
    token_fields = ("wallet_token", "wallet_id")


class DeferredPaymentStrategy(PaymentStrategy):
    """Settles outside the storefront; stays pending until an admin confirms it."""
    refundable = False
    transaction_prefix: str
    note: str

    async def process(self, order: OrderDTO, payment_data: dict,
                      idempotency_key: str | None = None) -> PaymentOutcomeDTO:
        return PaymentOutcomeDTO(
            status=PaymentStatus.PENDING,
            transaction_id=f"{self.transaction_prefix}_{_now_ms()}",
            gateway_response={"method": self.method.value, "status": "pending_confirmation", "note": self.note},
        )

    async def refund(self, payment: PaymentDTO, amount: float,
                     idempotency_key: str | None = None) -> PaymentOutcomeDTO:
        raise RefundNotSupportedException(self.method.value)


class CashPaymentStrategy(DeferredPaymentStrategy):
    method = PaymentMethod.CASH
    transaction_prefix = "CASH"
    note = "Payment will be collected on delivery"


class PayLaterPaymentStrategy(DeferredPaymentStrategy):
    method = PaymentMethod.PAY_LATER
    transaction_prefix = "PAYLATER"
    note = "Payment is due according to the pay later agreement"


def build_strategy_registry(gateway: PaymentGatewayClient | None = None) -> MappingProxyType:
    """PaymentMethod -> strategy instance. All gateway strategies share one client."""
    gateway = gateway or PaymentGatewayClient()
    return MappingProxyType({
        PaymentMethod.CARD: CardPaymentStrategy(gateway),
        PaymentMethod.BANK_TRANSFER: BankTransferPaymentStrategy(gateway),
        PaymentMethod.WALLET: WalletPaymentStrategy(gateway),
        PaymentMethod.CASH: CashPaymentStrategy(),
        PaymentMethod.PAY_LATER: PayLaterPaymentStrategy(),
    })
