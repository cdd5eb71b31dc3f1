from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from marketplace.core.clock import now_utc
from marketplace.core.errors import IllegalTransitionError, NotFoundError
from marketplace.domain.inventory import restore_stock
from marketplace.domain.orders.status import (
    CANCELLABLE,
    OrderStatus,
    is_allowed,
    is_behind,
    parse_status,
    validate_transition,
)
from marketplace.domain.wallet.ledger import lock_wallets, release_shipment_funds, reverse_shipment_funds
from marketplace.events import stage_event
from marketplace.persistence.models import LedgerEntryModel, OrderModel, ShipmentModel

logger = logging.getLogger(__name__)

ALL_SHIPMENTS_REQUIRED = frozenset({OrderStatus.DELIVERED, OrderStatus.RETURNED})


class StatusUpdateRequest(BaseModel):
    status: str = Field(min_length=1)
    shipment_id: str | None = None
    note: str | None = Field(default=None, max_length=500)


class LedgerEntrySummary(BaseModel):
    entry_id: str
    vendor_id: str
    order_id: str | None
    shipment_id: str | None
    transaction_type: str
    balance_status: str
    gross_amount: Decimal
    vendor_amount: Decimal
    commission_amount: Decimal
    vat_amount: Decimal
    description: str

    @classmethod
    def from_row(cls, row: LedgerEntryModel) -> "LedgerEntrySummary":
        return cls(
            entry_id=row.entry_id,
            vendor_id=row.vendor_id,
            order_id=row.order_id,
            shipment_id=row.shipment_id,
            transaction_type=row.transaction_type,
            balance_status=row.balance_status,
            gross_amount=row.gross_amount,
            vendor_amount=row.vendor_amount,
            commission_amount=row.commission_amount,
            vat_amount=row.vat_amount,
            description=row.description,
        )


class StatusUpdateResult(BaseModel):
    order_id: str
    shipment_id: str | None
    previous_status: str
    new_status: str
    order_status: str
    shipment_statuses: dict[str, str]
    ledger_entries: list[LedgerEntrySummary]


def _load_order_for_update(session: Session, order_id: str) -> OrderModel:
    order = session.scalar(select(OrderModel).where(OrderModel.id == order_id).with_for_update())
    if order is None:
        raise NotFoundError("Order", order_id)
    return order


def _enter_status(
    session: Session,
    order: OrderModel,
    shipment: ShipmentModel,
    requested: OrderStatus,
    now: datetime,
    restore: bool = True,
) -> list[LedgerEntryModel]:
    entries: list[LedgerEntryModel] = []
    if requested == OrderStatus.DELIVERED:
        entries.extend(release_shipment_funds(session, order, shipment, now))
        shipment.delivered_at = now
    elif requested == OrderStatus.RETURNED:
        # Stock rows are locked before wallet rows, as in order placement.
        if restore:
            restore_stock(session, shipment.items)
        entries.extend(
            reverse_shipment_funds(
                session,
                order,
                shipment,
                description=f"Return reversal for shipment {shipment.tracking_number}",
                now=now,
            )
        )
    shipment.status = requested.value
    shipment.updated_at = now
    return entries


def _roll_up_order_status(order: OrderModel, now: datetime) -> None:
    statuses = {shipment.status for shipment in order.shipments}
    if statuses == {OrderStatus.DELIVERED.value} and order.status != OrderStatus.DELIVERED.value:
        order.status = OrderStatus.DELIVERED.value
        order.delivered_at = now
    elif statuses == {OrderStatus.RETURNED.value}:
        order.status = OrderStatus.RETURNED.value


def _update_shipment(
    session: Session,
    order: OrderModel,
    shipment_id: str,
    requested: OrderStatus,
    now: datetime,
) -> tuple[str, list[LedgerEntryModel]]:
    shipment = next((row for row in order.shipments if row.id == shipment_id), None)
    if shipment is None:
        raise NotFoundError("Shipment", shipment_id)
    previous = shipment.status
    if requested == OrderStatus.CANCELLED:
        # Cancellation reverses the whole order, never a single shipment.
        raise IllegalTransitionError(previous, requested.value, target="shipment")
    validate_transition(previous, requested, target="shipment")

    entries = _enter_status(session, order, shipment, requested, now)
    _roll_up_order_status(order, now)
    return previous, entries


def _lock_payee_wallets(session: Session, shipments: list[ShipmentModel], now: datetime) -> None:
    lock_wallets(session, (item.payee_vendor_id for shipment in shipments for item in shipment.items), now)


def _cancel_order(session: Session, order: OrderModel, now: datetime) -> list[LedgerEntryModel]:
    for shipment in order.shipments:
        if parse_status(shipment.status) not in CANCELLABLE:
            raise IllegalTransitionError(shipment.status, OrderStatus.CANCELLED.value, target="shipment")

    restore_stock(session, order.items)
    _lock_payee_wallets(session, order.shipments, now)
    entries: list[LedgerEntryModel] = []
    for shipment in order.shipments:
        entries.extend(
            reverse_shipment_funds(
                session,
                order,
                shipment,
                description=f"Order {order.order_number} cancelled",
                now=now,
            )
        )
        shipment.status = OrderStatus.CANCELLED.value
        shipment.updated_at = now
    return entries


def _update_order(
    session: Session,
    order: OrderModel,
    requested: OrderStatus,
    now: datetime,
) -> tuple[str, list[LedgerEntryModel]]:
    previous = order.status
    validate_transition(previous, requested, target="order")

    if requested == OrderStatus.CANCELLED:
        entries = _cancel_order(session, order, now)
    else:
        moving = [shipment for shipment in order.shipments if is_behind(parse_status(shipment.status), requested)]
        for shipment in moving:
            if not is_allowed(parse_status(shipment.status), requested):
                raise IllegalTransitionError(shipment.status, requested.value, target="shipment")
        if requested in ALL_SHIPMENTS_REQUIRED:
            # The order only reaches these states once every shipment does.
            for shipment in order.shipments:
                if shipment not in moving and shipment.status != requested.value:
                    raise IllegalTransitionError(shipment.status, requested.value, target="shipment")
            if requested == OrderStatus.RETURNED:
                restore_stock(session, [item for shipment in moving for item in shipment.items])
            _lock_payee_wallets(session, moving, now)
        entries = []
        for shipment in moving:
            entries.extend(_enter_status(session, order, shipment, requested, now, restore=False))

    order.status = requested.value
    if requested == OrderStatus.DELIVERED:
        order.delivered_at = now
    return previous, entries


def update_status(
    session: Session,
    order_id: str,
    status: str | OrderStatus,
    shipment_id: str | None = None,
    note: str | None = None,
    now: datetime | None = None,
) -> StatusUpdateResult:
    now = now or now_utc()
    requested = parse_status(status)
    order = _load_order_for_update(session, order_id)

    if shipment_id is not None:
        previous, entries = _update_shipment(session, order, shipment_id, requested, now)
    else:
        previous, entries = _update_order(session, order, requested, now)

    order.updated_at = now
    session.flush()

    stage_event(
        session,
        "OrderStatusChanged",
        {
            "order_id": order.id,
            "shipment_id": shipment_id,
            "previous_status": previous,
            "new_status": requested.value,
        },
    )
    logger.info(
        "status changed: order=%s scope=%s from=%s to=%s ledger_entries=%s note=%s",
        order.order_number,
        f"shipment:{shipment_id}" if shipment_id else "order",
        previous,
        requested.value,
        len(entries),
        note or "-",
    )
    return StatusUpdateResult(
        order_id=order.id,
        shipment_id=shipment_id,
        previous_status=previous,
        new_status=requested.value,
        order_status=order.status,
        shipment_statuses={shipment.id: shipment.status for shipment in order.shipments},
        ledger_entries=[LedgerEntrySummary.from_row(entry) for entry in entries],
    )
