from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

import marketplace.persistence.db as db
from marketplace.core.config import get_settings
from marketplace.core.errors import (
    InsufficientBalanceError,
    InvalidInputError,
    NotFoundError,
    PayoutBelowMinimumError,
)
from marketplace.domain.orders import update_status
from marketplace.domain.wallet import (
    escrow_status,
    ledger_balance,
    list_ledger_entries,
    order_escrow,
    process_payout,
    wallet_snapshot,
)


def _deliver(order_id: str, now: datetime | None = None) -> None:
    for status in ("accepted", "ready_to_ship", "in_transit", "delivered"):
        with db.session_scope() as s:
            update_status(s, order_id, status, now=now)


def _payout(vendor_id: str, amount: str, note: str | None = None):
    with db.session_scope() as s:
        return process_payout(s, vendor_id, Decimal(amount), note=note)


def test_escrow_release_date_is_fourteen_days_after_delivery():
    delivered = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)

    held = escrow_status(delivered, now=delivered + timedelta(days=13, hours=23))
    assert held.release_date == datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc)
    assert held.hold_days == 14
    assert held.is_releasable is False

    due = escrow_status(delivered, now=delivered + timedelta(days=14))
    assert due.is_releasable is True
    assert due.to_dict()["release_date"] == "2024-03-15T10:00:00Z"


def test_escrow_treats_naive_timestamps_as_utc():
    status = escrow_status(datetime(2024, 3, 1, 10, 0), now=datetime(2024, 3, 20))
    assert status.is_releasable is True


def test_order_escrow_lists_delivered_shipments(place_order):
    order = place_order()
    delivered_at = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    _deliver(order.order_id, now=delivered_at)

    with db.session_scope() as s:
        view = order_escrow(s, order.order_id, now=delivered_at + timedelta(days=20))

    assert view["order_status"] == "delivered"
    assert view["order_escrow"]["release_date"] == "2024-05-15T12:00:00Z"
    assert view["order_escrow"]["is_releasable"] is True
    assert all(row["escrow"]["hold_days"] == 14 for row in view["shipments"])


def test_order_escrow_before_delivery(place_order):
    order = place_order()
    with db.session_scope() as s:
        view = order_escrow(s, order.order_id)
    assert view["order_escrow"] is None
    assert all(row["escrow"] is None for row in view["shipments"])

    with pytest.raises(NotFoundError):
        with db.session_scope() as s:
            order_escrow(s, "missing")


def test_payout_debits_available_balance(place_order):
    order = place_order()
    _deliver(order.order_id)

    entry = _payout("vendor-khan-silver", "500.00", note="March settlement")

    assert entry.transaction_type == "payout"
    assert entry.balance_status == "withdrawn"
    assert entry.vendor_amount == Decimal("-500.00")
    assert entry.description == "March settlement"

    with db.session_scope() as s:
        wallet = wallet_snapshot(s, "vendor-khan-silver")
        entries = list_ledger_entries(s, "vendor-khan-silver")
    assert wallet["available_balance"] == Decimal("412.00")
    assert wallet["total_payouts"] == Decimal("500.00")
    assert wallet["lifetime_earnings"] == Decimal("912.00")
    assert [row.transaction_type for row in entries] == ["sale", "release", "payout"]
    assert ledger_balance(entries) == wallet["pending_balance"] + wallet["available_balance"]


def test_payout_rules(place_order):
    order = place_order()
    _deliver(order.order_id)

    with pytest.raises(PayoutBelowMinimumError):
        _payout("vendor-khan-silver", "499.99")
    with pytest.raises(InsufficientBalanceError):
        _payout("vendor-khan-silver", "912.01")
    with pytest.raises(InvalidInputError):
        _payout("vendor-khan-silver", "0")
    with pytest.raises(InvalidInputError):
        _payout("vendor-khan-silver", "600", note="x" * 501)
    with pytest.raises(NotFoundError):
        _payout("vendor-missing", "600")

    with db.session_scope() as s:
        assert wallet_snapshot(s, "vendor-khan-silver")["available_balance"] == Decimal("912.00")


def test_pending_funds_cannot_be_paid_out(place_order):
    place_order()
    with pytest.raises(InsufficientBalanceError):
        _payout("vendor-khan-silver", "500")


def test_minimum_payout_comes_from_settings(place_order, monkeypatch):
    monkeypatch.setattr(get_settings(), "minimum_payout", Decimal("100.00"))
    order = place_order([("prod-woven-rug", 1)])
    _deliver(order.order_id)

    entry = _payout("vendor-siwa-collective", "150.00")
    assert entry.vendor_amount == Decimal("-150.00")


def test_wallet_snapshot_for_vendor_without_sales(seeded):
    with db.session_scope() as s:
        wallet = wallet_snapshot(s, "vendor-siwa-weavers")
    assert wallet["pending_balance"] == Decimal("0.00")
    assert wallet["available_balance"] == Decimal("0.00")


def test_return_after_payout_leaves_a_negative_available_balance(place_order):
    order = place_order()
    _deliver(order.order_id)
    _payout("vendor-khan-silver", "900.00")

    with db.session_scope() as s:
        update_status(s, order.order_id, "returned", shipment_id=order.shipments[0].shipment_id)
        wallet = wallet_snapshot(s, "vendor-khan-silver")

    assert wallet["available_balance"] == Decimal("-900.00")
    assert wallet["total_payouts"] == Decimal("900.00")
