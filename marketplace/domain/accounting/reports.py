from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from beancount.loader import load_string
from sqlalchemy import select
from sqlalchemy.orm import Session

from marketplace.core.money import to_money
from marketplace.domain.accounting.postings import (
    CASH,
    COMMISSION_INCOME,
    DELIVERY_INCOME,
    RECEIVABLE,
    SHIPPING_SUBSIDY,
    VAT_PAYABLE,
    VENDOR_AVAILABLE,
    VENDOR_PENDING,
    ledger_entries_to_postings,
    postings_to_beancount_text,
    shipments_to_postings,
)
from marketplace.persistence.models import LedgerEntryModel, ShipmentModel

logger = logging.getLogger(__name__)


def _sum_account(entries, account: str) -> Decimal:
    total = Decimal("0")
    for entry in entries:
        if getattr(entry, "postings", None) is None:
            continue
        for posting in entry.postings:
            if posting.account == account:
                total += posting.units.number
    return total


def _credit_total(entries, account: str) -> Decimal:
    # Liability and income accounts carry credit (negative) balances.
    return Decimal("0") - _sum_account(entries, account)


def _load_rows(session: Session, start: datetime | None, end: datetime | None):
    entries_stmt = select(LedgerEntryModel).order_by(LedgerEntryModel.seq_id.asc())
    shipments_stmt = select(ShipmentModel).order_by(ShipmentModel.created_at.asc())
    if start is not None:
        entries_stmt = entries_stmt.where(LedgerEntryModel.created_at >= start)
        shipments_stmt = shipments_stmt.where(ShipmentModel.created_at >= start)
    if end is not None:
        entries_stmt = entries_stmt.where(LedgerEntryModel.created_at < end)
        shipments_stmt = shipments_stmt.where(ShipmentModel.created_at < end)
    return list(session.scalars(entries_stmt).all()), list(session.scalars(shipments_stmt).all())


def generate_finance_report(
    session: Session,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict:
    ledger_rows, shipments = _load_rows(session, start, end)
    postings = ledger_entries_to_postings(ledger_rows) + shipments_to_postings(shipments)
    ledger_text = postings_to_beancount_text(postings)
    entries, errors, _ = load_string(ledger_text)
    if errors:
        raise ValueError(f"beancount parse errors: {errors}")

    commission = _credit_total(entries, COMMISSION_INCOME)
    delivery = _credit_total(entries, DELIVERY_INCOME)
    subsidy = _sum_account(entries, SHIPPING_SUBSIDY)
    report = {
        "customer_receivable": to_money(_sum_account(entries, RECEIVABLE)),
        "commission_income": to_money(commission),
        "delivery_income": to_money(delivery),
        "shipping_subsidy": to_money(subsidy),
        "vat_payable": to_money(_credit_total(entries, VAT_PAYABLE)),
        "vendor_pending": to_money(_credit_total(entries, VENDOR_PENDING)),
        "vendor_available": to_money(_credit_total(entries, VENDOR_AVAILABLE)),
        "vendor_paid_out": to_money(_credit_total(entries, CASH)),
        "net_platform_revenue": to_money(commission + delivery - subsidy),
        "posting_count": len(postings),
        "beancount_ledger": ledger_text,
    }
    logger.info(
        "finance report generated: postings=%s commission=%s vat=%s",
        len(postings),
        report["commission_income"],
        report["vat_payable"],
    )
    return report
