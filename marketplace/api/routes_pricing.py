from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from marketplace.domain.catalog import RepriceRequest, build_category_rates, reprice_product
from marketplace.persistence.db import get_session
from marketplace.pricing.calculator import (
    DEFAULT_DEVIATION_THRESHOLD,
    PricingInput,
    calculate_price,
    check_price_deviation,
    round_to_friendly_price,
)

router = APIRouter(tags=["pricing"])


class DeviationRequest(BaseModel):
    product_price: Decimal = Field(ge=0)
    category_avg_price: Decimal = Field(ge=0)
    threshold: Decimal = Field(default=DEFAULT_DEVIATION_THRESHOLD, ge=0)


class FriendlyPriceRequest(BaseModel):
    price: Decimal = Field(gt=0)


@router.post("/pricing/calculate")
def calculate(payload: PricingInput, session: Session = Depends(get_session)):
    # An empty category table means the built-in defaults apply.
    result = calculate_price(payload, category_rates=build_category_rates(session) or None)
    return {"pricing": result, "vendor_payout": str(result.vendor_payout)}


@router.post("/pricing/deviation")
def deviation(payload: DeviationRequest):
    return check_price_deviation(payload.product_price, payload.category_avg_price, threshold=payload.threshold)


@router.post("/pricing/friendly")
def friendly(payload: FriendlyPriceRequest):
    return {"price": str(payload.price), "friendly_price": str(round_to_friendly_price(payload.price))}


@router.post("/products/{product_id}/reprice")
def reprice(product_id: str, payload: RepriceRequest | None = None, session: Session = Depends(get_session)):
    payload = payload or RepriceRequest()
    return reprice_product(
        session,
        product_id,
        vendor_base_price=payload.vendor_base_price,
        custom_category_rate=payload.custom_category_rate,
    )
