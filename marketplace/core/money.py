"""Exact EGP arithmetic. Every persisted or returned figure goes through ``to_money``."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Union

CURRENCY = "EGP"
ZERO = Decimal("0.00")

Numeric = Union[Decimal, int, str]


def to_decimal(value: Numeric) -> Decimal:
    if isinstance(value, float):
        raise TypeError("float values are not allowed for money")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(value)
    except InvalidOperation as exc:
        raise ValueError(f"not a decimal amount: {value!r}") from exc


def round_half_away(value: Numeric, places: int = 2) -> Decimal:
    # ROUND_HALF_UP in the decimal module rounds ties away from zero for both signs.
    exponent = Decimal(1).scaleb(-places)
    return to_decimal(value).quantize(exponent, rounding=ROUND_HALF_UP)


def to_money(value: Numeric) -> Decimal:
    return round_half_away(value, 2)


def money_sum(values: Iterable[Decimal]) -> Decimal:
    return to_money(sum(values, ZERO))


def format_money(value: Decimal) -> str:
    return f"{to_money(value)} {CURRENCY}"


def allocate_pro_rata(total: Decimal, weights: list[Decimal]) -> list[Decimal]:
    """Split ``total`` by ``weights``; the last share absorbs rounding so the shares sum exactly."""
    if not weights:
        return []
    total = to_money(total)
    weight_sum = sum(weights, Decimal(0))
    shares: list[Decimal] = []
    allocated = ZERO
    for weight in weights[:-1]:
        share = to_money(total * weight / weight_sum) if weight_sum > 0 else ZERO
        shares.append(share)
        allocated += share
    shares.append(total - allocated)
    return shares
