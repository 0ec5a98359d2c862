from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"        # Created, waiting for payment
    PAID = "paid"              # Payment completed
    SHIPPED = "shipped"        # Handed to carrier (admin)
    DELIVERED = "delivered"    # Delivered to customer (admin)
    CANCELLED = "cancelled"    # Cancelled by user or admin, stock released
