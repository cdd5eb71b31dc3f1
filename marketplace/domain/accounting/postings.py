from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from marketplace.core.clock import now_utc
from marketplace.core.money import CURRENCY
from marketplace.domain.orders.status import OrderStatus
from marketplace.domain.wallet.ledger import BalanceStatus, TransactionType
from marketplace.persistence.models import LedgerEntryModel, ShipmentModel

RECEIVABLE = "Assets:Receivable:Customers"
CASH = "Assets:Cash"
VENDOR_PENDING = "Liabilities:VendorPayable:Pending"
VENDOR_AVAILABLE = "Liabilities:VendorPayable:Available"
VAT_PAYABLE = "Liabilities:Tax:VAT"
COMMISSION_INCOME = "Income:Commission"
DELIVERY_INCOME = "Income:Delivery"
SHIPPING_SUBSIDY = "Expenses:ShippingSubsidy"

ACCOUNTS = [
    RECEIVABLE,
    CASH,
    VENDOR_PENDING,
    VENDOR_AVAILABLE,
    VAT_PAYABLE,
    COMMISSION_INCOME,
    DELIVERY_INCOME,
    SHIPPING_SUBSIDY,
]


@dataclass
class PostingRecord:
    date: datetime
    narration: str
    debit_account: str
    credit_account: str
    amount: Decimal
    meta: dict


def _record(
    rows: list[PostingRecord],
    date: datetime,
    narration: str,
    debit_account: str,
    credit_account: str,
    amount: Decimal,
    meta: dict,
) -> None:
    if amount == 0:
        return
    # A negative amount is the same movement in the opposite direction.
    if amount < 0:
        debit_account, credit_account, amount = credit_account, debit_account, -amount
    rows.append(
        PostingRecord(
            date=date,
            narration=narration,
            debit_account=debit_account,
            credit_account=credit_account,
            amount=amount,
            meta=meta,
        )
    )


def ledger_entries_to_postings(entries: Iterable[LedgerEntryModel]) -> list[PostingRecord]:
    rows: list[PostingRecord] = []
    for entry in entries:
        meta = {"entry_id": entry.entry_id, "vendor_id": entry.vendor_id, "transaction_type": entry.transaction_type}
        narration = f"{entry.transaction_type} {entry.vendor_id} {entry.order_id or ''}".strip()

        if entry.transaction_type == TransactionType.SALE:
            _record(rows, entry.created_at, narration, RECEIVABLE, VENDOR_PENDING, entry.vendor_amount, meta)
            _record(rows, entry.created_at, narration, RECEIVABLE, COMMISSION_INCOME, entry.commission_amount, meta)
            _record(rows, entry.created_at, narration, RECEIVABLE, VAT_PAYABLE, entry.vat_amount, meta)

        if entry.transaction_type == TransactionType.RELEASE:
            _record(rows, entry.created_at, narration, VENDOR_PENDING, VENDOR_AVAILABLE, entry.vendor_amount, meta)

        if entry.transaction_type == TransactionType.REFUND:
            vendor_account = VENDOR_AVAILABLE if entry.balance_status == BalanceStatus.AVAILABLE else VENDOR_PENDING
            _record(rows, entry.created_at, narration, RECEIVABLE, vendor_account, entry.vendor_amount, meta)
            _record(rows, entry.created_at, narration, RECEIVABLE, COMMISSION_INCOME, entry.commission_amount, meta)
            _record(rows, entry.created_at, narration, RECEIVABLE, VAT_PAYABLE, entry.vat_amount, meta)

        if entry.transaction_type == TransactionType.PAYOUT:
            _record(rows, entry.created_at, narration, CASH, VENDOR_AVAILABLE, entry.vendor_amount, meta)

    return rows


def shipments_to_postings(shipments: Iterable[ShipmentModel]) -> list[PostingRecord]:
    rows: list[PostingRecord] = []
    for shipment in shipments:
        if shipment.status == OrderStatus.CANCELLED.value:
            continue
        meta = {"shipment_id": shipment.id, "tracking_number": shipment.tracking_number}
        narration = f"delivery {shipment.tracking_number}"
        _record(rows, shipment.created_at, narration, RECEIVABLE, DELIVERY_INCOME, shipment.delivery_fee, meta)
        _record(rows, shipment.created_at, narration, SHIPPING_SUBSIDY, DELIVERY_INCOME, shipment.platform_subsidy, meta)
    return rows


def postings_to_beancount_text(postings: list[PostingRecord]) -> str:
    lines = [
        'option "title" "Marketplace Ledger"',
        f'option "operating_currency" "{CURRENCY}"',
    ]
    if postings:
        first_day = min(posting.date.date() for posting in postings)
    else:
        first_day = now_utc().date()

    for account in ACCOUNTS:
        lines.append(f"{first_day.isoformat()} open {account} {CURRENCY}")

    for posting in postings:
        day = posting.date.date().isoformat()
        narration = posting.narration.replace('"', "'")
        lines.append(f'{day} * "{narration}"')
        lines.append(f"  {posting.debit_account}  {posting.amount} {CURRENCY}")
        lines.append(f"  {posting.credit_account}  {-posting.amount} {CURRENCY}")

    return "\n".join(lines) + "\n"
