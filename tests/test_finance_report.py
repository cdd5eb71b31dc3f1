from __future__ import annotations

from decimal import Decimal

from beancount.loader import load_string

import marketplace.persistence.db as db
from marketplace.domain.accounting import generate_finance_report
from marketplace.domain.accounting.postings import ledger_entries_to_postings, postings_to_beancount_text
from marketplace.domain.orders import update_status
from marketplace.domain.wallet import list_ledger_entries, process_payout


def _deliver_first_shipment_and_pay_out(order) -> None:
    for status in ("accepted", "ready_to_ship", "in_transit"):
        with db.session_scope() as s:
            update_status(s, order.order_id, status)
    with db.session_scope() as s:
        update_status(s, order.order_id, "delivered", shipment_id=order.shipments[0].shipment_id)
    with db.session_scope() as s:
        process_payout(s, "vendor-khan-silver", Decimal("500.00"))


def test_empty_report_is_a_valid_ledger(seeded):
    with db.session_scope() as s:
        report = generate_finance_report(s)
    assert report["posting_count"] == 0
    assert report["commission_income"] == Decimal("0.00")
    _, errors, _ = load_string(report["beancount_ledger"])
    assert errors == []


def test_report_totals_follow_the_ledger(place_order):
    order = place_order()
    _deliver_first_shipment_and_pay_out(order)

    with db.session_scope() as s:
        report = generate_finance_report(s)

    assert report["customer_receivable"] == order.total_amount
    assert report["commission_income"] == Decimal("280.00")
    assert report["vat_payable"] == Decimal("39.20")
    assert report["delivery_income"] == Decimal("118.00")
    assert report["shipping_subsidy"] == Decimal("0.00")
    assert report["vendor_pending"] == Decimal("530.00")
    assert report["vendor_available"] == Decimal("412.00")
    assert report["vendor_paid_out"] == Decimal("500.00")
    assert report["net_platform_revenue"] == Decimal("398.00")
    assert 'option "operating_currency" "EGP"' in report["beancount_ledger"]


def test_cancellation_nets_to_zero(place_order):
    order = place_order()
    with db.session_scope() as s:
        update_status(s, order.order_id, "cancelled")
        report = generate_finance_report(s)

    assert report["commission_income"] == Decimal("0.00")
    assert report["vat_payable"] == Decimal("0.00")
    assert report["vendor_pending"] == Decimal("0.00")
    assert report["delivery_income"] == Decimal("0.00")
    assert report["customer_receivable"] == Decimal("0.00")


def test_refund_postings_reverse_direction(place_order):
    order = place_order([("prod-silver-ring", 1)])
    with db.session_scope() as s:
        update_status(s, order.order_id, "cancelled")
        postings = ledger_entries_to_postings(list_ledger_entries(s, "vendor-khan-silver"))

    sale, refund = postings[0], postings[3]
    assert sale.debit_account == refund.credit_account == "Assets:Receivable:Customers"
    assert sale.credit_account == refund.debit_account == "Liabilities:VendorPayable:Pending"
    assert sale.amount == refund.amount == Decimal("456.00")

    _, errors, _ = load_string(postings_to_beancount_text(postings))
    assert errors == []


def test_shipping_subsidy_is_booked_as_platform_cost(place_order, monkeypatch):
    from marketplace.core.config import get_settings

    monkeypatch.setattr(get_settings(), "shipping_subsidy", Decimal("20.00"))
    order = place_order()
    assert order.total_delivery_fee == Decimal("78.00")

    with db.session_scope() as s:
        report = generate_finance_report(s)
    assert report["shipping_subsidy"] == Decimal("40.00")
    assert report["delivery_income"] == Decimal("118.00")
    assert report["net_platform_revenue"] == Decimal("358.00")
