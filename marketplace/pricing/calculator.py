"""Additive uplift model.

cooperative fee -> parent uplift -> marketplace uplift -> logistics surcharge,
folded into four buckets whose sum is the customer price:

    A = base + parent uplift                      (vendor revenue)
    B = A * 14% if the vendor is VAT registered   (vendor VAT)
    C = cooperative fee + marketplace uplift + logistics surcharge
    D = C * 14%                                   (platform VAT, never waived)
"""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, model_validator

from marketplace.core.money import ZERO, round_half_away, to_money
from marketplace.pricing.categories import CategoryRate, resolve_category_rate

VAT_RATE = Decimal("0.14")
COOPERATIVE_FEE_RATE = Decimal("0.05")
MINIMUM_FIXED_UPLIFT = Decimal("15.00")
LOW_PRICE_THRESHOLD = Decimal("100.00")
LOW_PRICE_FIXED_MARKUP = Decimal("20.00")
LOGISTICS_SURCHARGE = Decimal("10.00")
FRIENDLY_PRICE_STEP = Decimal("5")
DEFAULT_DEVIATION_THRESHOLD = Decimal("0.20")


class ParentUplift(BaseModel):
    type: Literal["fixed", "percentage"]
    value: Decimal = Field(ge=0)


class PricingInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    vendor_base_price: Decimal = Field(gt=0, description="EGP")
    category_id: str = Field(min_length=1)
    is_vendor_vat_registered: bool = False
    is_vendor_legalized: bool = True
    parent_uplift: ParentUplift | None = None
    custom_uplift_override: Decimal | None = Field(default=None, ge=0, description="EGP, replaces the marketplace uplift")
    custom_category_rate: Decimal | None = Field(default=None, ge=0, le=1)

    @model_validator(mode="after")
    def _blank_category(self) -> "PricingInput":
        if not self.category_id.strip():
            raise ValueError("category_id must not be blank")
        return self


class PricingResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    final_price: Decimal
    vendor_base_price: Decimal
    cooperative_fee: Decimal
    parent_vendor_uplift: Decimal
    price_after_cooperative: Decimal
    marketplace_uplift: Decimal
    logistics_surcharge: Decimal
    vendor_vat: Decimal
    arooba_vat: Decimal
    bucket_a: Decimal
    bucket_b: Decimal
    bucket_c: Decimal
    bucket_d: Decimal
    category_rate: Decimal
    gross_margin: Decimal
    margin_percent: Decimal

    @property
    def vendor_payout(self) -> Decimal:
        return self.bucket_a + self.bucket_b


class PriceDeviationResult(BaseModel):
    product_price: Decimal
    category_avg_price: Decimal
    deviation: Decimal
    threshold: Decimal
    is_flagged: bool
    direction: Literal["above", "below", "equal"]


def _parent_uplift(base_price: Decimal, uplift: ParentUplift | None) -> Decimal:
    if uplift is None:
        return ZERO
    if uplift.type == "fixed":
        return to_money(uplift.value)
    return to_money(base_price * uplift.value / Decimal(100))


def calculate_price(
    pricing_input: PricingInput,
    category_rates: Mapping[str, CategoryRate] | None = None,
) -> PricingResult:
    base_price = to_money(pricing_input.vendor_base_price)
    rate = resolve_category_rate(
        pricing_input.category_id,
        rates=category_rates,
        custom_rate=pricing_input.custom_category_rate,
    )

    cooperative_fee = ZERO if pricing_input.is_vendor_legalized else to_money(base_price * COOPERATIVE_FEE_RATE)
    parent_uplift = _parent_uplift(base_price, pricing_input.parent_uplift)
    price_after_coop = base_price + cooperative_fee

    if pricing_input.custom_uplift_override is not None:
        marketplace_uplift = to_money(pricing_input.custom_uplift_override)
    else:
        marketplace_uplift = max(to_money(price_after_coop * rate), MINIMUM_FIXED_UPLIFT)
        if base_price < LOW_PRICE_THRESHOLD:
            marketplace_uplift = max(marketplace_uplift, LOW_PRICE_FIXED_MARKUP)

    bucket_a = to_money(base_price + parent_uplift)
    bucket_b = to_money(bucket_a * VAT_RATE) if pricing_input.is_vendor_vat_registered else ZERO
    bucket_c = to_money(cooperative_fee + marketplace_uplift + LOGISTICS_SURCHARGE)
    bucket_d = to_money(bucket_c * VAT_RATE)
    final_price = bucket_a + bucket_b + bucket_c + bucket_d

    margin_percent = to_money(bucket_c / final_price * 100) if final_price > 0 else ZERO

    return PricingResult(
        final_price=final_price,
        vendor_base_price=base_price,
        cooperative_fee=cooperative_fee,
        parent_vendor_uplift=parent_uplift,
        price_after_cooperative=price_after_coop,
        marketplace_uplift=marketplace_uplift,
        logistics_surcharge=LOGISTICS_SURCHARGE,
        vendor_vat=bucket_b,
        arooba_vat=bucket_d,
        bucket_a=bucket_a,
        bucket_b=bucket_b,
        bucket_c=bucket_c,
        bucket_d=bucket_d,
        category_rate=rate,
        gross_margin=bucket_c,
        margin_percent=margin_percent,
    )


def round_to_friendly_price(price: Decimal) -> Decimal:
    # Display only; bucket math always uses the exact final price.
    steps = math.ceil(price / FRIENDLY_PRICE_STEP)
    return to_money(Decimal(steps) * FRIENDLY_PRICE_STEP)


def check_price_deviation(
    product_price: Decimal,
    category_avg_price: Decimal,
    threshold: Decimal = DEFAULT_DEVIATION_THRESHOLD,
) -> PriceDeviationResult:
    if category_avg_price > 0:
        deviation = abs(product_price - category_avg_price) / category_avg_price
    else:
        deviation = Decimal(0)

    if category_avg_price <= 0 or product_price == category_avg_price:
        direction = "equal"
    elif product_price > category_avg_price:
        direction = "above"
    else:
        direction = "below"

    return PriceDeviationResult(
        product_price=product_price,
        category_avg_price=category_avg_price,
        deviation=round_half_away(deviation, 4),
        threshold=threshold,
        is_flagged=deviation > threshold,
        direction=direction,
    )
