from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import select

import marketplace.persistence.db as db
from marketplace.core.errors import NotFoundError
from marketplace.domain.orders import update_status
from marketplace.domain.wallet import process_payout
from marketplace.persistence.models import ProductModel, TransactionSplitModel, VendorWalletModel
from marketplace.reconciliation import all_passed, run_order_reconciliation, run_vendor_reconciliation
from marketplace.reconciliation.rules import check_split_buckets, check_stock_non_negative, check_wallet_matches_ledger


def _full_lifecycle(place_order):
    order = place_order()
    for status in ("accepted", "ready_to_ship", "in_transit", "delivered"):
        with db.session_scope() as s:
            update_status(s, order.order_id, status)
    with db.session_scope() as s:
        process_payout(s, "vendor-khan-silver", Decimal("600.00"))
    with db.session_scope() as s:
        update_status(s, order.order_id, "returned", shipment_id=order.shipments[1].shipment_id)
    return order


def test_everything_reconciles_after_a_full_lifecycle(place_order):
    order = _full_lifecycle(place_order)
    cancelled = place_order([("prod-olive-soap", 4)], delivery_zone_id="alexandria")
    with db.session_scope() as s:
        update_status(s, cancelled.order_id, "cancelled")

    with db.session_scope() as s:
        for vendor_id in ("vendor-khan-silver", "vendor-siwa-collective"):
            results = run_vendor_reconciliation(s, vendor_id)
            assert all_passed(results), [result.to_dict() for result in results]
        for order_id in (order.order_id, cancelled.order_id):
            results = run_order_reconciliation(s, order_id)
            assert all_passed(results), [result.to_dict() for result in results]


def test_wallet_drift_is_detected(place_order):
    place_order()
    with db.session_scope() as s:
        s.get(VendorWalletModel, "vendor-khan-silver").pending_balance = Decimal("1.00")

    with db.session_scope() as s:
        result = check_wallet_matches_ledger(s, "vendor-khan-silver")
    assert result.passed is False
    assert "ledger=912.00" in result.detail


def test_tampered_split_is_detected(place_order):
    order = place_order()
    with db.session_scope() as s:
        split = s.scalars(
            select(TransactionSplitModel).where(TransactionSplitModel.order_id == order.order_id)
        ).first()
        split.bucket_c = split.bucket_c + Decimal("0.01")

    with db.session_scope() as s:
        assert check_split_buckets(s, order.order_id).passed is False
        assert all_passed(run_order_reconciliation(s, order.order_id)) is False


def test_negative_stock_is_detected(seeded):
    with db.session_scope() as s:
        s.get(ProductModel, "prod-olive-soap").quantity_available = -1

    with db.session_scope() as s:
        result = check_stock_non_negative(s)
    assert result.passed is False
    assert "SWC-SOAP-001" in result.detail


def test_unknown_order_cannot_be_reconciled(seeded):
    with pytest.raises(NotFoundError):
        with db.session_scope() as s:
            run_order_reconciliation(s, "missing")
