"""
Order Filter Utilities

Maps OrderFilterType enum to lists of OrderStatus and turns an OrderQueryFilter
into SQLAlchemy predicates plus an ORDER BY clause. Queries are always built
from column expressions, never from caller-supplied strings.
"""
from enum import Enum

from pydantic import BaseModel

from enums.order_filter import OrderFilterType
from enums.order_payment_status import OrderPaymentStatus
from enums.order_status import OrderStatus
from models.order import Order


class OrderSortField(str, Enum):
    CREATED_AT = "created_at"
    TOTAL_AMOUNT = "total_amount"
    UPDATED_AT = "updated_at"


_SORT_COLUMNS = {
    OrderSortField.CREATED_AT: Order.created_at,
    OrderSortField.TOTAL_AMOUNT: Order.total_amount,
    OrderSortField.UPDATED_AT: Order.updated_at,
}


def get_status_filter_for_filter_type(filter_type: OrderFilterType | int | None) -> list[OrderStatus] | None:
    """
    Converts OrderFilterType to list of OrderStatus values for repository queries.

    Args:
        filter_type: OrderFilterType enum value (or None for default)

    Returns:
        List of OrderStatus to filter by, or None for all orders

    Default behavior:
        None or REQUIRES_ACTION → [PAID] (orders waiting to be shipped)
    """
    if filter_type is None or filter_type == OrderFilterType.REQUIRES_ACTION:
        return [OrderStatus.PAID]

    if filter_type == OrderFilterType.ALL:
        return None  # No filter = all orders

    if filter_type == OrderFilterType.ACTIVE:
        return [OrderStatus.PENDING, OrderStatus.PAID, OrderStatus.SHIPPED]

    if filter_type == OrderFilterType.COMPLETED:
        return [OrderStatus.DELIVERED]

    if filter_type == OrderFilterType.CANCELLED:
        return [OrderStatus.CANCELLED]

    # Individual status filters
    if filter_type == OrderFilterType.PENDING:
        return [OrderStatus.PENDING]

    if filter_type == OrderFilterType.PAID:
        return [OrderStatus.PAID]

    if filter_type == OrderFilterType.SHIPPED:
        return [OrderStatus.SHIPPED]

    if filter_type == OrderFilterType.DELIVERED:
        return [OrderStatus.DELIVERED]

    # Unknown filter type - return all
    return None


class OrderQueryFilter(BaseModel):
    """Predicates and sort order for order listings."""
    statuses: list[OrderStatus] | None = None
    payment_status: OrderPaymentStatus | None = None
    user_id: int | None = None
    sort_by: OrderSortField = OrderSortField.CREATED_AT
    descending: bool = True

    @classmethod
    def from_filter_type(cls, filter_type: OrderFilterType | int | None, **kwargs) -> "OrderQueryFilter":
        return cls(statuses=get_status_filter_for_filter_type(filter_type), **kwargs)

    def predicates(self) -> list:
        conditions = []
        if self.statuses:
            conditions.append(Order.status.in_(self.statuses))
        if self.payment_status is not None:
            conditions.append(Order.payment_status == self.payment_status)
        if self.user_id is not None:
            conditions.append(Order.user_id == self.user_id)
        return conditions

    def order_by(self) -> list:
        column = _SORT_COLUMNS[self.sort_by]
        primary = column.desc() if self.descending else column.asc()
        # id as tie-breaker keeps pagination stable within the same second
        secondary = Order.id.desc() if self.descending else Order.id.asc()
        return [primary, secondary]
