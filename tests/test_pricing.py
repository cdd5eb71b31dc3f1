from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from marketplace.core.errors import InvalidInputError
from marketplace.core.money import round_half_away
from marketplace.pricing import (
    CategoryRate,
    PricingInput,
    calculate_price,
    check_price_deviation,
    resolve_category_rate,
    round_to_friendly_price,
)
from marketplace.pricing.calculator import ParentUplift


def _input(**overrides) -> PricingInput:
    values = {"vendor_base_price": Decimal("500.00"), "category_id": "home-decor-textiles"}
    values.update(overrides)
    return PricingInput(**values)


def test_reference_waterfall():
    result = calculate_price(
        _input(
            is_vendor_legalized=False,
            is_vendor_vat_registered=False,
            parent_uplift=ParentUplift(type="fixed", value=Decimal("30")),
        )
    )

    assert result.cooperative_fee == Decimal("25.00")
    assert result.price_after_cooperative == Decimal("525.00")
    assert result.marketplace_uplift == Decimal("105.00")
    assert result.logistics_surcharge == Decimal("10.00")
    assert result.bucket_a == Decimal("530.00")
    assert result.bucket_b == Decimal("0.00")
    assert result.bucket_c == Decimal("140.00")
    assert result.bucket_d == Decimal("19.60")
    assert result.final_price == Decimal("689.60")
    assert result.vendor_payout == Decimal("530.00")
    assert result.gross_margin == result.bucket_c


@pytest.mark.parametrize(
    "base_price,vat,legalized,uplift",
    [
        (Decimal("0.01"), False, True, None),
        (Decimal("99.99"), True, False, ParentUplift(type="percentage", value=Decimal("12.5"))),
        (Decimal("100.00"), True, True, ParentUplift(type="fixed", value=Decimal("7.33"))),
        (Decimal("1234.57"), False, False, ParentUplift(type="percentage", value=Decimal("3"))),
        (Decimal("18999.99"), True, True, None),
    ],
)
def test_buckets_always_sum_to_final_price(base_price, vat, legalized, uplift):
    result = calculate_price(
        _input(
            vendor_base_price=base_price,
            is_vendor_vat_registered=vat,
            is_vendor_legalized=legalized,
            parent_uplift=uplift,
        )
    )
    assert result.bucket_a + result.bucket_b + result.bucket_c + result.bucket_d == result.final_price
    assert result.bucket_d > 0
    if not vat:
        assert result.bucket_b == Decimal("0.00")
    if legalized:
        assert result.cooperative_fee == Decimal("0.00")
    else:
        assert result.cooperative_fee == round_half_away(base_price * Decimal("0.05"))


def test_vat_registered_vendor_pays_vat_on_bucket_a():
    result = calculate_price(_input(is_vendor_vat_registered=True))
    assert result.bucket_b == Decimal("70.00")
    assert result.vendor_vat == result.bucket_b
    assert result.vendor_payout == Decimal("570.00")


def test_minimum_uplift_floors():
    cheap = calculate_price(_input(vendor_base_price=Decimal("50.00"), category_id="food-essentials"))
    assert cheap.marketplace_uplift == Decimal("20.00")

    mid = calculate_price(_input(vendor_base_price=Decimal("100.00"), category_id="food-essentials"))
    assert mid.marketplace_uplift == Decimal("15.00")

    high = calculate_price(_input(vendor_base_price=Decimal("1000.00"), category_id="food-essentials"))
    assert high.marketplace_uplift == Decimal("120.00")


def test_custom_uplift_override_replaces_computed_uplift():
    result = calculate_price(_input(custom_uplift_override=Decimal("5.00")))
    assert result.marketplace_uplift == Decimal("5.00")
    assert result.bucket_c == Decimal("15.00")


def test_percentage_parent_uplift_rounds_half_away_from_zero():
    result = calculate_price(
        _input(vendor_base_price=Decimal("10.10"), parent_uplift=ParentUplift(type="percentage", value=Decimal("5")))
    )
    # 10.10 * 5% = 0.505
    assert result.parent_vendor_uplift == Decimal("0.51")
    assert result.bucket_a == Decimal("10.61")


def test_unknown_category_uses_flat_rate():
    result = calculate_price(_input(category_id="spaceships"))
    assert result.category_rate == Decimal("0.20")
    assert result.marketplace_uplift == Decimal("100.00")


def test_category_lookup_is_case_insensitive():
    assert resolve_category_rate("  Food-Essentials ") == Decimal("0.12")


def test_blank_category_is_rejected():
    with pytest.raises(ValidationError):
        _input(category_id="   ")
    with pytest.raises(InvalidInputError):
        resolve_category_rate("")


def test_non_positive_base_price_is_rejected():
    with pytest.raises(ValidationError):
        _input(vendor_base_price=Decimal("0"))
    with pytest.raises(ValidationError):
        _input(vendor_base_price=Decimal("-10"))


def test_custom_category_rate_must_be_in_range():
    rates = {
        "ceramics": CategoryRate(
            category_id="ceramics",
            default_rate=Decimal("0.20"),
            min_rate=Decimal("0.15"),
            max_rate=Decimal("0.25"),
        )
    }
    result = calculate_price(_input(category_id="ceramics", custom_category_rate=Decimal("0.25")), category_rates=rates)
    assert result.marketplace_uplift == Decimal("125.00")

    with pytest.raises(InvalidInputError):
        calculate_price(_input(category_id="ceramics", custom_category_rate=Decimal("0.30")), category_rates=rates)


def test_pinned_category_rate_wins():
    rates = {"gold": CategoryRate(category_id="gold", default_rate=Decimal("0.20"), pinned_rate=Decimal("0.08"))}
    result = calculate_price(_input(category_id="gold", custom_category_rate=Decimal("0.50")), category_rates=rates)
    assert result.category_rate == Decimal("0.08")
    assert result.marketplace_uplift == Decimal("40.00")


def test_friendly_price_rounds_up_to_five():
    assert round_to_friendly_price(Decimal("689.60")) == Decimal("690.00")
    assert round_to_friendly_price(Decimal("690.00")) == Decimal("690.00")
    assert round_to_friendly_price(Decimal("690.01")) == Decimal("695.00")


def test_price_deviation():
    above = check_price_deviation(Decimal("1200"), Decimal("800"), Decimal("0.20"))
    assert above.deviation == Decimal("0.5000")
    assert above.is_flagged is True
    assert above.direction == "above"

    below = check_price_deviation(Decimal("700"), Decimal("800"))
    assert below.direction == "below"
    assert below.is_flagged is False

    no_baseline = check_price_deviation(Decimal("700"), Decimal("0"))
    assert no_baseline.deviation == Decimal("0")
    assert no_baseline.is_flagged is False
