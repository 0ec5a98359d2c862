from enum import Enum


class PaymentStatus(str, Enum):
    PENDING = "pending"        # Awaiting out-of-band confirmation (cash, pay later) or first attempt
    PROCESSING = "processing"  # Attempt claimed, gateway charge in flight
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDING = "refunding"    # Refund claimed, gateway refund in flight
    REFUNDED = "refunded"
