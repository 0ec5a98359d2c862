from enum import IntEnum


class OrderFilterType(IntEnum):
    """
    Filter groups for admin order management.

    Default filter: REQUIRES_ACTION (paid orders waiting for shipment)
    """
    # Predefined filter groups
    REQUIRES_ACTION = 1          # PAID (DEFAULT)
    ALL = 2                      # All orders
    ACTIVE = 3                   # PENDING, PAID, SHIPPED
    COMPLETED = 4                # DELIVERED
    CANCELLED = 5                # CANCELLED

    # Individual status filters
    PENDING = 6
    PAID = 7
    SHIPPED = 8
    DELIVERED = 9
