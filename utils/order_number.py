import secrets
import time

import config

_BASE36_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError(f"base36 encoding needs a non-negative integer, got {value}")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_order_number(prefix: str | None = None, timestamp_ms: int | None = None) -> str:
    """
    Build a human-readable order number: <PREFIX>-<base36 ms timestamp>-<5 random base36 chars>.

    Uniqueness is not guaranteed here; the orders.order_number unique
    constraint and OrderService's regenerate loop take care of collisions.
    """
    prefix = prefix or config.ORDER_NUMBER_PREFIX
    if timestamp_ms is None:
        timestamp_ms = time.time_ns() // 1_000_000
    suffix = "".join(secrets.choice(_BASE36_ALPHABET) for _ in range(5))
    return f"{prefix}-{to_base36(timestamp_ms)}-{suffix}".upper()
