from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from marketplace.core.clock import as_utc, now_utc
from marketplace.core.config import get_settings
from marketplace.core.errors import NotFoundError
from marketplace.persistence.models import OrderModel


@dataclass(frozen=True)
class EscrowStatus:
    delivered_at: datetime
    release_date: datetime
    hold_days: int
    is_releasable: bool

    def to_dict(self) -> dict:
        return {
            "delivered_at": self.delivered_at.isoformat().replace("+00:00", "Z"),
            "release_date": self.release_date.isoformat().replace("+00:00", "Z"),
            "hold_days": self.hold_days,
            "is_releasable": self.is_releasable,
        }


def escrow_status(delivered_at: datetime, now: datetime | None = None, hold_days: int | None = None) -> EscrowStatus:
    days = get_settings().escrow_hold_days if hold_days is None else hold_days
    delivered = as_utc(delivered_at)
    release_date = delivered + timedelta(days=days)
    current = as_utc(now) if now is not None else now_utc()
    return EscrowStatus(
        delivered_at=delivered,
        release_date=release_date,
        hold_days=days,
        is_releasable=current >= release_date,
    )


def order_escrow(session: Session, order_id: str, now: datetime | None = None) -> dict:
    order = session.get(OrderModel, order_id)
    if order is None:
        raise NotFoundError("Order", order_id)

    shipments = []
    for shipment in order.shipments:
        row = {
            "shipment_id": shipment.id,
            "tracking_number": shipment.tracking_number,
            "status": shipment.status,
            "escrow": None,
        }
        if shipment.delivered_at is not None:
            row["escrow"] = escrow_status(shipment.delivered_at, now=now).to_dict()
        shipments.append(row)

    return {
        "order_id": order.id,
        "order_status": order.status,
        "order_escrow": escrow_status(order.delivered_at, now=now).to_dict() if order.delivered_at else None,
        "shipments": shipments,
    }
