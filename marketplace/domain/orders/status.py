from __future__ import annotations

from enum import Enum

from marketplace.core.errors import IllegalTransitionError, InvalidInputError


class OrderStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    READY_TO_SHIP = "ready_to_ship"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    RETURNED = "returned"
    CANCELLED = "cancelled"
    REJECTED_SHIPPING = "rejected_shipping"


ALLOWED_TRANSITIONS: frozenset[tuple[OrderStatus, OrderStatus]] = frozenset(
    {
        (OrderStatus.PENDING, OrderStatus.ACCEPTED),
        (OrderStatus.PENDING, OrderStatus.CANCELLED),
        (OrderStatus.ACCEPTED, OrderStatus.READY_TO_SHIP),
        (OrderStatus.ACCEPTED, OrderStatus.CANCELLED),
        (OrderStatus.READY_TO_SHIP, OrderStatus.IN_TRANSIT),
        (OrderStatus.IN_TRANSIT, OrderStatus.DELIVERED),
        (OrderStatus.IN_TRANSIT, OrderStatus.REJECTED_SHIPPING),
        (OrderStatus.DELIVERED, OrderStatus.RETURNED),
    }
)

# Position along the main delivery path; side branches have no rank.
PROGRESS_RANK: dict[OrderStatus, int] = {
    OrderStatus.PENDING: 0,
    OrderStatus.ACCEPTED: 1,
    OrderStatus.READY_TO_SHIP: 2,
    OrderStatus.IN_TRANSIT: 3,
    OrderStatus.DELIVERED: 4,
    OrderStatus.RETURNED: 5,
}

SIDE_BRANCH_TERMINALS = frozenset({OrderStatus.CANCELLED, OrderStatus.REJECTED_SHIPPING})
CANCELLABLE = frozenset({OrderStatus.PENDING, OrderStatus.ACCEPTED})


def parse_status(value: str | OrderStatus) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    normalized = str(value).strip().lower().replace("-", "_")
    aliases = {
        "readytoship": OrderStatus.READY_TO_SHIP,
        "intransit": OrderStatus.IN_TRANSIT,
        "rejectedshipping": OrderStatus.REJECTED_SHIPPING,
    }
    if normalized in aliases:
        return aliases[normalized]
    try:
        return OrderStatus(normalized)
    except ValueError as exc:
        raise InvalidInputError(f"unknown status: {value}", status=str(value)) from exc


def is_allowed(current: OrderStatus, requested: OrderStatus) -> bool:
    return (current, requested) in ALLOWED_TRANSITIONS


def validate_transition(current: str | OrderStatus, requested: str | OrderStatus, target: str = "order") -> None:
    current_status = parse_status(current)
    requested_status = parse_status(requested)
    if not is_allowed(current_status, requested_status):
        raise IllegalTransitionError(current_status.value, requested_status.value, target=target)


def is_behind(current: OrderStatus, requested: OrderStatus) -> bool:
    """Whether a shipment at ``current`` still has to move when its order moves to ``requested``."""
    if current in SIDE_BRANCH_TERMINALS or current == requested:
        return False
    if requested == OrderStatus.REJECTED_SHIPPING:
        return PROGRESS_RANK[current] < PROGRESS_RANK[OrderStatus.DELIVERED]
    if requested not in PROGRESS_RANK:
        return True
    return PROGRESS_RANK[current] < PROGRESS_RANK[requested]
