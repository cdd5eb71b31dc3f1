from marketplace.domain.orders.assembler import CreateOrderRequest, OrderPlacementResult, create_order, get_order
from marketplace.domain.orders.status import OrderStatus, parse_status, validate_transition
from marketplace.domain.orders.transitions import StatusUpdateRequest, StatusUpdateResult, update_status

__all__ = [
    "CreateOrderRequest",
    "OrderPlacementResult",
    "OrderStatus",
    "StatusUpdateRequest",
    "StatusUpdateResult",
    "create_order",
    "get_order",
    "parse_status",
    "update_status",
    "validate_transition",
]
