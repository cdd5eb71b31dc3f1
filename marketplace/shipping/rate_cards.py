from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from marketplace.core.errors import MissingRateCardError, NotFoundError
from marketplace.persistence.models import RateCardModel, ShippingZoneModel
from marketplace.shipping.fees import RateCardRates


def find_rate_card(session: Session, from_zone: str, to_zone: str) -> RateCardModel | None:
    stmt = (
        select(RateCardModel)
        .where(RateCardModel.from_zone_id == from_zone)
        .where(RateCardModel.to_zone_id == to_zone)
        .where(RateCardModel.is_active.is_(True))
        .order_by(RateCardModel.id.desc())
        .limit(1)
    )
    return session.scalar(stmt)


def get_rates(session: Session, from_zone: str, to_zone: str) -> RateCardRates:
    for zone_id in (from_zone, to_zone):
        if session.get(ShippingZoneModel, zone_id) is None:
            raise NotFoundError("ShippingZone", zone_id)
    card = find_rate_card(session, from_zone, to_zone)
    if card is None:
        raise MissingRateCardError(from_zone, to_zone)
    return RateCardRates(
        from_zone=from_zone,
        to_zone=to_zone,
        base_rate=card.base_fee,
        per_kg_rate=card.per_kg_rate,
    )
