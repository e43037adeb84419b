"""
Order Status State Machine.

Governs the lifecycle of a placed order from creation to a terminal state.

    created -> accepted -> in_kitchen -> ready
        pickup:   ready -> delivered (or picked_up -> delivered)
        delivery: ready -> courier_requested -> driver_en_route
                        -> picked_up -> delivered

Any non-terminal state can also end in canceled; created can be rejected;
courier states can fail. Terminal states (delivered, rejected, canceled,
failed) accept no further transitions.

Guards layered on top of the transition table:
- A transition to the current state is rejected.
- Pickup orders never request a courier.
- A delivery order that is ready must request a courier next (or cancel).

Inbound status strings from kitchen, POS and courier systems are normalized
through an alias table first. Unknown strings normalize to "created" so the
UI keeps rendering when an upstream schema drifts; each fallback is logged.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Union

from .fulfillment import FulfillmentType, coerce_fulfillment

logger = logging.getLogger(__name__)


class OrderStatus(str, Enum):
    """Fulfillment status of a placed order."""
    CREATED = "created"
    ACCEPTED = "accepted"
    IN_KITCHEN = "in_kitchen"
    READY = "ready"
    COURIER_REQUESTED = "courier_requested"
    DRIVER_EN_ROUTE = "driver_en_route"
    PICKED_UP = "picked_up"
    DELIVERED = "delivered"
    REJECTED = "rejected"
    CANCELED = "canceled"
    FAILED = "failed"


INITIAL_STATUS = OrderStatus.CREATED

STATUS_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.CREATED: frozenset({OrderStatus.ACCEPTED, OrderStatus.REJECTED, OrderStatus.CANCELED}),
    OrderStatus.ACCEPTED: frozenset({OrderStatus.IN_KITCHEN, OrderStatus.CANCELED}),
    OrderStatus.IN_KITCHEN: frozenset({OrderStatus.READY, OrderStatus.CANCELED}),
    OrderStatus.READY: frozenset({
        OrderStatus.COURIER_REQUESTED,
        OrderStatus.PICKED_UP,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELED,
    }),
    OrderStatus.COURIER_REQUESTED: frozenset({
        OrderStatus.DRIVER_EN_ROUTE,
        OrderStatus.CANCELED,
        OrderStatus.FAILED,
    }),
    OrderStatus.DRIVER_EN_ROUTE: frozenset({
        OrderStatus.PICKED_UP,
        OrderStatus.CANCELED,
        OrderStatus.FAILED,
    }),
    OrderStatus.PICKED_UP: frozenset({OrderStatus.DELIVERED, OrderStatus.FAILED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.REJECTED: frozenset(),
    OrderStatus.CANCELED: frozenset(),
    OrderStatus.FAILED: frozenset(),
}

TERMINAL_STATES: FrozenSet[OrderStatus] = frozenset({
    OrderStatus.DELIVERED,
    OrderStatus.REJECTED,
    OrderStatus.CANCELED,
    OrderStatus.FAILED,
})

# Synonyms used by upstream systems
STATUS_ALIASES: Dict[str, OrderStatus] = {
    "confirmed": OrderStatus.ACCEPTED,
    "preparing": OrderStatus.IN_KITCHEN,
    "out_for_delivery": OrderStatus.PICKED_UP,
}

_NEXT_STATUS: Dict[OrderStatus, OrderStatus] = {
    OrderStatus.CREATED: OrderStatus.ACCEPTED,
    OrderStatus.ACCEPTED: OrderStatus.IN_KITCHEN,
    OrderStatus.IN_KITCHEN: OrderStatus.READY,
    OrderStatus.COURIER_REQUESTED: OrderStatus.DRIVER_EN_ROUTE,
    OrderStatus.DRIVER_EN_ROUTE: OrderStatus.PICKED_UP,
    OrderStatus.PICKED_UP: OrderStatus.DELIVERED,
}

_STATUS_DISPLAY: Dict[OrderStatus, Dict[str, str]] = {
    OrderStatus.CREATED: {"label": "Order Placed", "description": "Your order has been submitted"},
    OrderStatus.ACCEPTED: {"label": "Confirmed", "description": "Restaurant has confirmed your order"},
    OrderStatus.IN_KITCHEN: {"label": "Preparing", "description": "Your food is being prepared"},
    OrderStatus.READY: {"label": "Ready", "description": "Your order is ready"},
    OrderStatus.COURIER_REQUESTED: {"label": "Finding Driver", "description": "Looking for a delivery driver"},
    OrderStatus.DRIVER_EN_ROUTE: {"label": "Driver En Route", "description": "Driver is on the way to pick up"},
    OrderStatus.PICKED_UP: {"label": "Out for Delivery", "description": "Driver is delivering your order"},
    OrderStatus.DELIVERED: {"label": "Delivered", "description": "Your order has been delivered"},
    OrderStatus.REJECTED: {"label": "Rejected", "description": "Order could not be fulfilled"},
    OrderStatus.CANCELED: {"label": "Canceled", "description": "Order has been canceled"},
    OrderStatus.FAILED: {"label": "Failed", "description": "An error occurred with your order"},
}


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a transition check. reason is set when not allowed."""
    allowed: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


def is_known_status(status: Optional[str]) -> bool:
    """True if the string is a canonical status or a known alias."""
    if not status:
        return False
    if isinstance(status, OrderStatus):
        return True
    if not isinstance(status, str):
        return False
    key = status.strip().lower()
    return key in STATUS_ALIASES or key in OrderStatus._value2member_map_


def normalize_order_status(status: Optional[str]) -> OrderStatus:
    """
    Map an inbound status string to a canonical OrderStatus.

    Aliases are resolved first ("confirmed" -> accepted). Empty values and
    unrecognized values (including non-strings) fall back to "created";
    unrecognized ones are logged at WARNING so upstream drift is visible.
    """
    if isinstance(status, OrderStatus):
        return status
    if not status:
        return INITIAL_STATUS
    if not isinstance(status, str):
        logger.warning("Non-string order status %r, falling back to %s", status, INITIAL_STATUS.value)
        return INITIAL_STATUS

    key = status.strip().lower()
    if key in STATUS_ALIASES:
        return STATUS_ALIASES[key]
    try:
        return OrderStatus(key)
    except ValueError:
        logger.warning("Unrecognized order status %r, falling back to %s", status, INITIAL_STATUS.value)
        return INITIAL_STATUS


def is_terminal(status: Union[str, OrderStatus]) -> bool:
    return normalize_order_status(status) in TERMINAL_STATES


def can_transition(current: Union[str, OrderStatus], target: Union[str, OrderStatus]) -> bool:
    """True if the transition table allows current -> target."""
    return normalize_order_status(target) in STATUS_TRANSITIONS[normalize_order_status(current)]


def guard_transition(
    current: Union[str, OrderStatus],
    target: Union[str, OrderStatus],
    fulfillment: Union[str, FulfillmentType, None] = None,
) -> TransitionResult:
    """
    Validate a status change against the table and the fulfillment guards.

    Args:
        current: Order's current status
        target: Requested next status
        fulfillment: "pickup" or "delivery"; None skips fulfillment guards

    Returns:
        TransitionResult with a human-readable reason when rejected
    """
    current = normalize_order_status(current)
    target = normalize_order_status(target)
    fulfillment_type = coerce_fulfillment(fulfillment) if fulfillment else None

    if current == target:
        return TransitionResult(False, "Already in this state")

    if not can_transition(current, target):
        return TransitionResult(False, "Invalid state transition")

    if fulfillment_type == FulfillmentType.PICKUP and target == OrderStatus.COURIER_REQUESTED:
        return TransitionResult(False, "Pickup orders do not use courier")

    if (
        fulfillment_type == FulfillmentType.DELIVERY
        and current == OrderStatus.READY
        and target not in (OrderStatus.COURIER_REQUESTED, OrderStatus.CANCELED)
    ):
        return TransitionResult(False, "Delivery orders must request courier")

    return TransitionResult(True)


def next_status(
    current: Union[str, OrderStatus],
    fulfillment: Union[str, FulfillmentType, None],
) -> Optional[OrderStatus]:
    """
    The status expected to come next, for progress displays.

    Returns None for terminal states.
    """
    current = normalize_order_status(current)
    if current == OrderStatus.READY:
        if coerce_fulfillment(fulfillment) == FulfillmentType.DELIVERY:
            return OrderStatus.COURIER_REQUESTED
        return OrderStatus.DELIVERED
    return _NEXT_STATUS.get(current)


def status_display(status: Union[str, OrderStatus]) -> Dict[str, str]:
    """Customer-facing label and description for a status."""
    return dict(_STATUS_DISPLAY[normalize_order_status(status)])
