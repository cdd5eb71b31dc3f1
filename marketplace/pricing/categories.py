from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping

from marketplace.core.errors import InvalidInputError

MVP_FLAT_RATE = Decimal("0.20")


@dataclass(frozen=True)
class CategoryRate:
    category_id: str
    default_rate: Decimal
    min_rate: Decimal | None = None
    max_rate: Decimal | None = None
    pinned_rate: Decimal | None = None

    def resolve(self, custom_rate: Decimal | None = None) -> Decimal:
        if self.pinned_rate is not None:
            return self.pinned_rate
        if custom_rate is None:
            return self.default_rate
        low = self.min_rate if self.min_rate is not None else self.default_rate
        high = self.max_rate if self.max_rate is not None else self.default_rate
        if not low <= custom_rate <= high:
            raise InvalidInputError(
                f"custom rate {custom_rate} outside [{low}, {high}] for category '{self.category_id}'",
                category_id=self.category_id,
                custom_rate=custom_rate,
            )
        return custom_rate


def _rate(category_id: str, default: str, low: str, high: str) -> CategoryRate:
    return CategoryRate(
        category_id=category_id,
        default_rate=Decimal(default),
        min_rate=Decimal(low),
        max_rate=Decimal(high),
    )


DEFAULT_CATEGORY_RATES: dict[str, CategoryRate] = {
    rate.category_id: rate
    for rate in (
        _rate("jewelry-accessories", "0.15", "0.12", "0.20"),
        _rate("fashion-apparel", "0.22", "0.18", "0.25"),
        _rate("home-decor-fragile", "0.25", "0.20", "0.30"),
        _rate("home-decor-textiles", "0.20", "0.15", "0.25"),
        _rate("leather-goods", "0.20", "0.15", "0.25"),
        _rate("beauty-personal", "0.20", "0.15", "0.25"),
        _rate("furniture-woodwork", "0.15", "0.12", "0.20"),
        _rate("food-essentials", "0.12", "0.10", "0.15"),
    )
}


def resolve_category_rate(
    category_id: str,
    rates: Mapping[str, CategoryRate] | None = None,
    custom_rate: Decimal | None = None,
) -> Decimal:
    if not category_id or not category_id.strip():
        raise InvalidInputError("category id is required")
    table = DEFAULT_CATEGORY_RATES if rates is None else rates
    rate = table.get(category_id.strip().lower())
    if rate is None:
        return MVP_FLAT_RATE
    return rate.resolve(custom_rate)
