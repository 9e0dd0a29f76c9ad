"""
Status lifecycle for accounts and orders.

This is the only place transition legality is decided. The data-layer
procedures call ``next_*_status`` before writing, and the screens call
``allowed_*_actions`` to decide which buttons to show.
"""

from enum import Enum
from typing import Dict, List, Tuple

from db.models import OrderStatus, UserStatus
from shop.errors import InvalidTransitionError


class OrderAction(str, Enum):
    PAY = "pay"
    FULFILL = "fulfill"
    CANCEL = "cancel"


class UserAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    BLOCK = "block"
    UNBLOCK = "unblock"


ORDER_TRANSITIONS: Dict[Tuple[OrderStatus, OrderAction], OrderStatus] = {
    (OrderStatus.PLACED, OrderAction.PAY): OrderStatus.PAID,
    (OrderStatus.PLACED, OrderAction.FULFILL): OrderStatus.FULFILLED,
    (OrderStatus.PLACED, OrderAction.CANCEL): OrderStatus.CANCELLED,
    (OrderStatus.PAID, OrderAction.FULFILL): OrderStatus.FULFILLED,
    (OrderStatus.PAID, OrderAction.CANCEL): OrderStatus.CANCELLED,
}

# rejected has no way out; no reopen path is exposed
USER_TRANSITIONS: Dict[Tuple[UserStatus, UserAction], UserStatus] = {
    (UserStatus.PENDING, UserAction.APPROVE): UserStatus.APPROVED,
    (UserStatus.PENDING, UserAction.REJECT): UserStatus.REJECTED,
    (UserStatus.APPROVED, UserAction.BLOCK): UserStatus.BLOCKED,
    (UserStatus.BLOCKED, UserAction.UNBLOCK): UserStatus.APPROVED,
}

TERMINAL_ORDER_STATUSES = frozenset({OrderStatus.FULFILLED, OrderStatus.CANCELLED})


def next_order_status(current: OrderStatus, action: OrderAction) -> OrderStatus:
    """Return the status ``action`` leads to, or raise InvalidTransitionError."""
    current, action = OrderStatus(current), OrderAction(action)
    try:
        return ORDER_TRANSITIONS[(current, action)]
    except KeyError:
        raise InvalidTransitionError(
            f"Cannot {action.value} an order that is {current.value}"
        ) from None


def next_user_status(current: UserStatus, action: UserAction) -> UserStatus:
    """Return the status ``action`` leads to, or raise InvalidTransitionError."""
    current, action = UserStatus(current), UserAction(action)
    try:
        return USER_TRANSITIONS[(current, action)]
    except KeyError:
        raise InvalidTransitionError(
            f"Cannot {action.value} a user that is {current.value}"
        ) from None


def allowed_order_actions(current: OrderStatus) -> List[OrderAction]:
    current = OrderStatus(current)
    return [a for (s, a) in ORDER_TRANSITIONS if s == current]


def allowed_user_actions(current: UserStatus) -> List[UserAction]:
    current = UserStatus(current)
    return [a for (s, a) in USER_TRANSITIONS if s == current]


def is_terminal_order_status(status: OrderStatus) -> bool:
    return OrderStatus(status) in TERMINAL_ORDER_STATUSES
