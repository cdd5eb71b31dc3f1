from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from pydantic import BaseModel

from marketplace.core.errors import InvalidInputError
from marketplace.core.money import ZERO, round_half_away, to_money

VOLUMETRIC_DIVISOR = Decimal("5000")
INCLUDED_WEIGHT_KG = Decimal("1")


@dataclass(frozen=True)
class RateCardRates:
    from_zone: str
    to_zone: str
    base_rate: Decimal
    per_kg_rate: Decimal


class ShippingFeeResult(BaseModel):
    from_zone: str
    to_zone: str
    actual_weight: Decimal
    volumetric_weight: Decimal
    chargeable_weight: Decimal
    base_fee: Decimal
    excess_weight_fee: Decimal
    total_fee: Decimal
    subsidized_fee: Decimal
    subsidy_amount: Decimal


def volumetric_weight(length_cm: Decimal, width_cm: Decimal, height_cm: Decimal) -> Decimal:
    return round_half_away(length_cm * width_cm * height_cm / VOLUMETRIC_DIVISOR, 2)


def _require_positive(name: str, value: Decimal) -> None:
    if value <= 0:
        raise InvalidInputError(f"{name} must be greater than zero", field=name, value=value)


def calculate_weight_based_fee(
    actual_weight_kg: Decimal,
    volumetric_weight_kg: Decimal,
    rates: RateCardRates,
    subsidy: Decimal = ZERO,
) -> ShippingFeeResult:
    if subsidy < 0:
        raise InvalidInputError("subsidy must not be negative", field="subsidy", value=subsidy)

    chargeable = max(actual_weight_kg, volumetric_weight_kg)
    excess_fee = ZERO
    if chargeable > INCLUDED_WEIGHT_KG:
        excess_fee = to_money((chargeable - INCLUDED_WEIGHT_KG) * rates.per_kg_rate)
    total_fee = to_money(rates.base_rate + excess_fee)

    # The platform absorbs the subsidy; the customer-visible fee never drops below zero.
    subsidized_fee = max(to_money(total_fee - subsidy), ZERO)

    return ShippingFeeResult(
        from_zone=rates.from_zone,
        to_zone=rates.to_zone,
        actual_weight=actual_weight_kg,
        volumetric_weight=volumetric_weight_kg,
        chargeable_weight=chargeable,
        base_fee=to_money(rates.base_rate),
        excess_weight_fee=excess_fee,
        total_fee=total_fee,
        subsidized_fee=subsidized_fee,
        subsidy_amount=total_fee - subsidized_fee,
    )


def calculate_shipping_fee(
    actual_weight_kg: Decimal,
    length_cm: Decimal,
    width_cm: Decimal,
    height_cm: Decimal,
    from_zone: str,
    to_zone: str,
    base_rate: Decimal,
    per_kg_rate: Decimal,
    subsidy: Decimal = ZERO,
) -> ShippingFeeResult:
    _require_positive("actual_weight_kg", actual_weight_kg)
    _require_positive("length_cm", length_cm)
    _require_positive("width_cm", width_cm)
    _require_positive("height_cm", height_cm)
    if base_rate < 0 or per_kg_rate < 0:
        raise InvalidInputError("rate card values must not be negative", base_rate=base_rate, per_kg_rate=per_kg_rate)

    return calculate_weight_based_fee(
        actual_weight_kg=actual_weight_kg,
        volumetric_weight_kg=volumetric_weight(length_cm, width_cm, height_cm),
        rates=RateCardRates(from_zone=from_zone, to_zone=to_zone, base_rate=base_rate, per_kg_rate=per_kg_rate),
        subsidy=subsidy,
    )
