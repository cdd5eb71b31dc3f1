from marketplace.shipping.fees import (
    RateCardRates,
    ShippingFeeResult,
    calculate_shipping_fee,
    calculate_weight_based_fee,
    volumetric_weight,
)
from marketplace.shipping.rate_cards import find_rate_card, get_rates

__all__ = [
    "RateCardRates",
    "ShippingFeeResult",
    "calculate_shipping_fee",
    "calculate_weight_based_fee",
    "find_rate_card",
    "get_rates",
    "volumetric_weight",
]
