from __future__ import annotations

from decimal import Decimal
from typing import Any


class MarketplaceError(Exception):
    code = "marketplace_error"

    def __init__(self, message: str, **detail: Any):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"detail": self.message, "error": self.code}
        for key, value in self.detail.items():
            body[key] = str(value) if isinstance(value, Decimal) else value
        return body


class InvalidInputError(MarketplaceError, ValueError):
    code = "validation"


class NotFoundError(MarketplaceError, LookupError):
    code = "not_found"

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} '{entity_id}' not found", entity=entity, entity_id=str(entity_id))


class BusinessRuleError(MarketplaceError):
    code = "business_rule"


class ProductUnavailableError(BusinessRuleError):
    code = "product_unavailable"

    def __init__(self, product_id: str, status: str):
        super().__init__(
            f"product '{product_id}' is not available for purchase (status={status})",
            product_id=product_id,
            status=status,
        )


class InsufficientStockError(BusinessRuleError):
    code = "insufficient_stock"

    def __init__(self, product_id: str, requested: int, available: int):
        super().__init__(
            f"insufficient stock for product '{product_id}': requested={requested}, available={available}",
            product_id=product_id,
            requested=requested,
            available=available,
        )


class ZoneMismatchError(BusinessRuleError):
    code = "zone_mismatch"

    def __init__(self, product_id: str, product_zone: str, delivery_zone: str):
        super().__init__(
            f"product '{product_id}' is local-only to zone '{product_zone}', cannot deliver to '{delivery_zone}'",
            product_id=product_id,
            product_zone=product_zone,
            delivery_zone=delivery_zone,
        )


class MissingRateCardError(BusinessRuleError):
    code = "missing_rate_card"

    def __init__(self, from_zone: str, to_zone: str):
        super().__init__(
            f"no active rate card for zone pair {from_zone} -> {to_zone}",
            from_zone=from_zone,
            to_zone=to_zone,
        )


class IllegalTransitionError(BusinessRuleError):
    code = "illegal_transition"

    def __init__(self, current: str, requested: str, target: str = "order"):
        super().__init__(
            f"cannot transition {target} from {current} to {requested}",
            current=current,
            requested=requested,
            target=target,
        )


class InsufficientBalanceError(BusinessRuleError):
    code = "insufficient_balance"

    def __init__(self, vendor_id: str, available: Decimal, requested: Decimal):
        super().__init__(
            f"insufficient available balance for vendor '{vendor_id}': available={available}, requested={requested}",
            vendor_id=vendor_id,
            available=available,
            requested=requested,
        )


class PayoutBelowMinimumError(BusinessRuleError):
    code = "payout_below_minimum"

    def __init__(self, requested: Decimal, minimum: Decimal):
        super().__init__(
            f"payout amount must be at least {minimum}, requested {requested}",
            requested=requested,
            minimum=minimum,
        )
