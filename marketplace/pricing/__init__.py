from marketplace.pricing.calculator import (
    PriceDeviationResult,
    PricingInput,
    PricingResult,
    calculate_price,
    check_price_deviation,
    round_to_friendly_price,
)
from marketplace.pricing.categories import CategoryRate, DEFAULT_CATEGORY_RATES, resolve_category_rate

__all__ = [
    "CategoryRate",
    "DEFAULT_CATEGORY_RATES",
    "PriceDeviationResult",
    "PricingInput",
    "PricingResult",
    "calculate_price",
    "check_price_deviation",
    "resolve_category_rate",
    "round_to_friendly_price",
]
