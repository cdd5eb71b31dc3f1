from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from marketplace.core.config import get_settings
from marketplace.persistence.db import get_session
from marketplace.shipping.fees import calculate_shipping_fee
from marketplace.shipping.rate_cards import get_rates

router = APIRouter(tags=["shipping"])


class ShippingFeeRequest(BaseModel):
    actual_weight_kg: Decimal
    length_cm: Decimal
    width_cm: Decimal
    height_cm: Decimal
    from_zone: str = Field(min_length=1)
    to_zone: str = Field(min_length=1)
    base_rate: Decimal | None = None
    per_kg_rate: Decimal | None = None


@router.post("/shipping/fee")
def shipping_fee(payload: ShippingFeeRequest, session: Session = Depends(get_session)):
    base_rate, per_kg_rate = payload.base_rate, payload.per_kg_rate
    if base_rate is None or per_kg_rate is None:
        rates = get_rates(session, payload.from_zone, payload.to_zone)
        base_rate, per_kg_rate = rates.base_rate, rates.per_kg_rate
    return calculate_shipping_fee(
        actual_weight_kg=payload.actual_weight_kg,
        length_cm=payload.length_cm,
        width_cm=payload.width_cm,
        height_cm=payload.height_cm,
        from_zone=payload.from_zone,
        to_zone=payload.to_zone,
        base_rate=base_rate,
        per_kg_rate=per_kg_rate,
        subsidy=get_settings().shipping_subsidy,
    )
