"""
Order State Machine for validating order status transitions and maintaining consistency.

This module implements a finite state machine to ensure valid order status transitions
and provide audit logging for all status changes.
"""

import logging
from typing import Dict, List, Optional, Set

from enums.order_status import OrderStatus
from exceptions.order import InvalidStateTransitionException

logger = logging.getLogger(__name__)


class OrderStatusTransition:
    """Represents a valid status transition with metadata"""

    def __init__(self, from_status: OrderStatus, to_status: OrderStatus, requires_admin: bool = False,
                 payment_driven: bool = False, description: str = ""):
        self.from_status = from_status
        self.to_status = to_status
        self.requires_admin = requires_admin
        self.payment_driven = payment_driven
        self.description = description

    def __repr__(self):
        admin_flag = " (Admin)" if self.requires_admin else ""
        payment_flag = " (Payment)" if self.payment_driven else ""
        return f"{self.from_status.value} -> {self.to_status.value}{admin_flag}{payment_flag}"


class OrderStateMachine:
    """
    Finite state machine for order status transitions with validation and audit logging.

    Valid status transitions:
    - PENDING -> PAID (only on a completed payment)
    - PENDING -> CANCELLED (user or admin)
    - PAID -> CANCELLED (user or admin, completed payments are refunded)
    - PAID -> SHIPPED (admin only)
    - SHIPPED -> DELIVERED (admin only)

    Invalid transitions (will be rejected):
    - DELIVERED -> any status (final state)
    - CANCELLED -> any status (final state)
    - SHIPPED -> CANCELLED (goods already left the warehouse)
    """

    # Define all valid transitions
    VALID_TRANSITIONS: List[OrderStatusTransition] = [
        # From PENDING
        OrderStatusTransition(
            OrderStatus.PENDING,
            OrderStatus.PAID,
            payment_driven=True,
            description="Payment completed"
        ),
        OrderStatusTransition(
            OrderStatus.PENDING,
            OrderStatus.CANCELLED,
            description="Unpaid order cancelled by user or admin"
        ),

        # From PAID
        OrderStatusTransition(
            OrderStatus.PAID,
            OrderStatus.CANCELLED,
            description="Paid order cancelled, payment refunded"
        ),
        OrderStatusTransition(
            OrderStatus.PAID,
            OrderStatus.SHIPPED,
            requires_admin=True,
            description="Order shipped by admin"
        ),

        # From SHIPPED
        OrderStatusTransition(
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
            requires_admin=True,
            description="Delivery confirmed by admin"
        ),
    ]

    # Build transition map for fast lookup
    _transition_map: Dict[OrderStatus, Set[OrderStatus]] = {}
    _admin_required_transitions: Set[tuple] = set()
    _payment_driven_transitions: Set[tuple] = set()
    _transition_descriptions: Dict[tuple, str] = {}

    @classmethod
    def _build_transition_map(cls):
        """Build internal transition maps for performance"""
        if cls._transition_map:
            return  # Already built

        for transition in cls.VALID_TRANSITIONS:
            cls._transition_map.setdefault(transition.from_status, set()).add(transition.to_status)

            key = (transition.from_status, transition.to_status)
            if transition.requires_admin:
                cls._admin_required_transitions.add(key)
            if transition.payment_driven:
                cls._payment_driven_transitions.add(key)
            cls._transition_descriptions[key] = transition.description

    @classmethod
    def is_valid_transition(cls, from_status: OrderStatus, to_status: OrderStatus) -> bool:
        """
        Check if a status transition is valid according to the state machine.

        Args:
            from_status: Current order status
            to_status: Desired new status

        Returns:
            True if transition is valid, False otherwise
        """
        cls._build_transition_map()
        return to_status in cls._transition_map.get(from_status, set())

    @classmethod
    def requires_admin(cls, from_status: OrderStatus, to_status: OrderStatus) -> bool:
        cls._build_transition_map()
        return (from_status, to_status) in cls._admin_required_transitions

    @classmethod
    def is_payment_driven(cls, from_status: OrderStatus, to_status: OrderStatus) -> bool:
        cls._build_transition_map()
        return (from_status, to_status) in cls._payment_driven_transitions

    @classmethod
    def get_valid_transitions(cls, from_status: OrderStatus) -> List[OrderStatus]:
        cls._build_transition_map()
        return sorted(cls._transition_map.get(from_status, set()), key=lambda s: s.value)

    @classmethod
    def get_transition_description(cls, from_status: OrderStatus, to_status: OrderStatus) -> str:
        cls._build_transition_map()
        return cls._transition_descriptions.get(
            (from_status, to_status),
            f"Transition from {from_status.value} to {to_status.value}"
        )

    @classmethod
    def is_final_status(cls, status: OrderStatus) -> bool:
        return status in (OrderStatus.DELIVERED, OrderStatus.CANCELLED)

    @classmethod
    def is_cancellable(cls, status: OrderStatus) -> bool:
        return cls.is_valid_transition(status, OrderStatus.CANCELLED)

    @classmethod
    def validate_and_log_transition(cls, order_id: int, from_status: OrderStatus, to_status: OrderStatus,
                                    admin_id: Optional[int] = None, user_id: Optional[int] = None,
                                    payment_id: Optional[int] = None) -> None:
        """
        Validate a status transition and write an audit log entry.

        Args:
            order_id: ID of the order being transitioned
            from_status: Current order status
            to_status: Desired new status
            admin_id: ID of admin performing transition (if applicable)
            user_id: ID of user performing transition (if applicable)
            payment_id: Completed payment driving the transition (if applicable)

        Raises:
            InvalidStateTransitionException: If the transition is not allowed for this performer
        """
        if not cls.is_valid_transition(from_status, to_status):
            logger.error(f"Invalid status transition for order {order_id}: {from_status.value} -> {to_status.value}")
            raise InvalidStateTransitionException(order_id, from_status.value, to_status.value)

        if cls.requires_admin(from_status, to_status) and admin_id is None:
            logger.error(f"Admin required for transition {from_status.value} -> {to_status.value} on order {order_id}")
            raise InvalidStateTransitionException(order_id, from_status.value, to_status.value)

        if cls.is_payment_driven(from_status, to_status) and payment_id is None:
            logger.error(f"Transition {from_status.value} -> {to_status.value} on order {order_id} needs a completed payment")
            raise InvalidStateTransitionException(order_id, from_status.value, to_status.value)

        transition_desc = cls.get_transition_description(from_status, to_status)
        if admin_id:
            performer = f"admin {admin_id}"
        elif user_id:
            performer = f"user {user_id}"
        elif payment_id:
            performer = f"payment {payment_id}"
        else:
            performer = "system"

        logger.info(f"ORDER_STATUS_TRANSITION: Order {order_id} {from_status.value} -> {to_status.value} by {performer}: {transition_desc}")


def get_next_valid_statuses(current_status: OrderStatus) -> List[OrderStatus]:
    """
    Get all valid next statuses for an order.

    Args:
        current_status: Current status of the order

    Returns:
        List of valid next statuses
    """
    return OrderStateMachine.get_valid_transitions(current_status)
