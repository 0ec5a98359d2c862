from enum import Enum


class PaymentMethod(str, Enum):
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    WALLET = "wallet"
    CASH = "cash"
    PAY_LATER = "pay_later"

    def is_deferred(self) -> bool:
        """Deferred methods settle outside the storefront and never call the gateway."""
        return self in (PaymentMethod.CASH, PaymentMethod.PAY_LATER)
