from __future__ import annotations

from dataclasses import asdict, dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from marketplace.core.errors import NotFoundError
from marketplace.core.money import ZERO, money_sum
from marketplace.domain.wallet.ledger import (
    BalanceStatus,
    TransactionType,
    ledger_balance,
    list_ledger_entries,
    wallet_snapshot,
)
from marketplace.persistence.models import OrderModel, ProductModel, TransactionSplitModel


@dataclass
class ReconciliationResult:
    rule: str
    passed: bool
    detail: str

    def to_dict(self) -> dict:
        return asdict(self)


def check_wallet_matches_ledger(session: Session, vendor_id: str) -> ReconciliationResult:
    wallet = wallet_snapshot(session, vendor_id)
    entries = list_ledger_entries(session, vendor_id)
    expected = ledger_balance(entries)
    actual = wallet["pending_balance"] + wallet["available_balance"]
    return ReconciliationResult(
        rule="wallet_matches_ledger",
        passed=actual == expected,
        detail=f"wallet={actual}, ledger={expected}",
    )


def check_balances_by_status(session: Session, vendor_id: str) -> ReconciliationResult:
    wallet = wallet_snapshot(session, vendor_id)
    pending = ZERO
    available = ZERO
    for entry in list_ledger_entries(session, vendor_id):
        if entry.transaction_type == TransactionType.SALE:
            pending += entry.vendor_amount
        elif entry.transaction_type == TransactionType.RELEASE:
            pending -= entry.vendor_amount
            available += entry.vendor_amount
        elif entry.transaction_type == TransactionType.REFUND:
            if entry.balance_status == BalanceStatus.AVAILABLE:
                available += entry.vendor_amount
            else:
                pending += entry.vendor_amount
        elif entry.transaction_type == TransactionType.PAYOUT:
            available += entry.vendor_amount

    passed = wallet["pending_balance"] == pending and wallet["available_balance"] == available
    return ReconciliationResult(
        rule="balances_by_status",
        passed=passed,
        detail=(
            f"pending wallet={wallet['pending_balance']} ledger={pending}, "
            f"available wallet={wallet['available_balance']} ledger={available}"
        ),
    )


def check_split_buckets(session: Session, order_id: str) -> ReconciliationResult:
    splits = session.scalars(select(TransactionSplitModel).where(TransactionSplitModel.order_id == order_id)).all()
    for split in splits:
        buckets = split.bucket_a + split.bucket_b + split.bucket_c + split.bucket_d
        if buckets != split.gross_amount:
            return ReconciliationResult(
                rule="split_buckets_sum_to_gross",
                passed=False,
                detail=f"split={split.id} buckets={buckets} gross={split.gross_amount}",
            )
    return ReconciliationResult(rule="split_buckets_sum_to_gross", passed=True, detail=f"splits={len(splits)}")


def check_order_totals(session: Session, order_id: str) -> ReconciliationResult:
    order = session.get(OrderModel, order_id)
    if order is None:
        raise NotFoundError("Order", order_id)
    splits = session.scalars(select(TransactionSplitModel).where(TransactionSplitModel.order_id == order_id)).all()

    split_total = money_sum(split.gross_amount for split in splits)
    if split_total != order.subtotal:
        return ReconciliationResult(
            rule="order_totals",
            passed=False,
            detail=f"subtotal={order.subtotal} splits={split_total}",
        )
    if order.total_amount != order.subtotal + order.total_delivery_fee:
        return ReconciliationResult(
            rule="order_totals",
            passed=False,
            detail=f"total={order.total_amount} subtotal={order.subtotal} delivery={order.total_delivery_fee}",
        )
    for shipment in order.shipments:
        if shipment.cod_amount_due != shipment.items_total + shipment.delivery_fee:
            return ReconciliationResult(
                rule="order_totals",
                passed=False,
                detail=f"shipment={shipment.tracking_number} cod={shipment.cod_amount_due}",
            )
        fee_shares = money_sum(split.bucket_e for split in splits if split.shipment_id == shipment.id)
        if fee_shares != shipment.delivery_fee:
            return ReconciliationResult(
                rule="order_totals",
                passed=False,
                detail=f"shipment={shipment.tracking_number} fee={shipment.delivery_fee} bucket_e={fee_shares}",
            )
    return ReconciliationResult(rule="order_totals", passed=True, detail=f"subtotal={order.subtotal}")


def check_stock_non_negative(session: Session) -> ReconciliationResult:
    negative = session.scalars(select(ProductModel.sku).where(ProductModel.quantity_available < 0)).all()
    if negative:
        return ReconciliationResult(
            rule="stock_non_negative",
            passed=False,
            detail=f"negative stock for sku={', '.join(negative)}",
        )
    return ReconciliationResult(rule="stock_non_negative", passed=True, detail="ok")


def run_vendor_reconciliation(session: Session, vendor_id: str) -> list[ReconciliationResult]:
    return [
        check_wallet_matches_ledger(session, vendor_id),
        check_balances_by_status(session, vendor_id),
        check_stock_non_negative(session),
    ]


def run_order_reconciliation(session: Session, order_id: str) -> list[ReconciliationResult]:
    return [
        check_split_buckets(session, order_id),
        check_order_totals(session, order_id),
    ]


def all_passed(results: list[ReconciliationResult]) -> bool:
    return all(result.passed for result in results)
