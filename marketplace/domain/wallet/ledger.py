from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from marketplace.core.clock import now_utc
from marketplace.core.config import get_settings
from marketplace.core.errors import (
    InsufficientBalanceError,
    InvalidInputError,
    NotFoundError,
    PayoutBelowMinimumError,
)
from marketplace.core.money import ZERO, money_sum, to_money
from marketplace.events import stage_event
from marketplace.persistence.models import (
    LedgerEntryModel,
    OrderItemModel,
    OrderModel,
    ShipmentModel,
    VendorModel,
    VendorWalletModel,
)

logger = logging.getLogger(__name__)


class TransactionType:
    SALE = "sale"
    RELEASE = "release"
    REFUND = "refund"
    PAYOUT = "payout"


class BalanceStatus:
    PENDING = "pending"
    AVAILABLE = "available"
    WITHDRAWN = "withdrawn"


@dataclass
class PayeeTotals:
    vendor_id: str
    gross: Decimal = ZERO
    vendor_amount: Decimal = ZERO
    commission: Decimal = ZERO
    vat: Decimal = ZERO

    def add(self, item: OrderItemModel) -> None:
        self.gross += item.total_price
        self.vendor_amount += item.vendor_payout
        self.commission += item.bucket_c
        self.vat += item.bucket_d


def group_by_payee(items: Iterable[OrderItemModel]) -> list[PayeeTotals]:
    groups: "OrderedDict[str, PayeeTotals]" = OrderedDict()
    for item in items:
        totals = groups.get(item.payee_vendor_id)
        if totals is None:
            totals = groups[item.payee_vendor_id] = PayeeTotals(vendor_id=item.payee_vendor_id)
        totals.add(item)
    # Wallet rows are always locked in vendor id order.
    return sorted(groups.values(), key=lambda totals: totals.vendor_id)


def lock_wallet(session: Session, vendor_id: str, now: datetime | None = None) -> VendorWalletModel:
    session.flush()
    wallet = session.scalar(
        select(VendorWalletModel).where(VendorWalletModel.vendor_id == vendor_id).with_for_update()
    )
    if wallet is None:
        wallet = VendorWalletModel(
            vendor_id=vendor_id,
            pending_balance=ZERO,
            available_balance=ZERO,
            lifetime_earnings=ZERO,
            total_payouts=ZERO,
            updated_at=now or now_utc(),
        )
        session.add(wallet)
    return wallet


def lock_wallets(session: Session, vendor_ids: Iterable[str], now: datetime | None = None) -> list[VendorWalletModel]:
    return [lock_wallet(session, vendor_id, now) for vendor_id in sorted(set(vendor_ids))]


def _append_entry(
    session: Session,
    vendor_id: str,
    transaction_type: str,
    balance_status: str,
    gross: Decimal,
    vendor_amount: Decimal,
    commission: Decimal,
    vat: Decimal,
    description: str,
    now: datetime,
    order_id: str | None = None,
    shipment_id: str | None = None,
) -> LedgerEntryModel:
    entry = LedgerEntryModel(
        vendor_id=vendor_id,
        order_id=order_id,
        shipment_id=shipment_id,
        transaction_type=transaction_type,
        balance_status=balance_status,
        gross_amount=to_money(gross),
        vendor_amount=to_money(vendor_amount),
        commission_amount=to_money(commission),
        vat_amount=to_money(vat),
        description=description,
        created_at=now,
    )
    session.add(entry)
    return entry


def credit_pending_sales(
    session: Session,
    order: OrderModel,
    items: Iterable[OrderItemModel],
    now: datetime,
) -> list[LedgerEntryModel]:
    entries: list[LedgerEntryModel] = []
    for totals in group_by_payee(items):
        entry = _append_entry(
            session,
            vendor_id=totals.vendor_id,
            transaction_type=TransactionType.SALE,
            balance_status=BalanceStatus.PENDING,
            gross=totals.gross,
            vendor_amount=totals.vendor_amount,
            commission=totals.commission,
            vat=totals.vat,
            description=f"Sale from order {order.order_number}",
            now=now,
            order_id=order.id,
        )
        wallet = lock_wallet(session, totals.vendor_id, now)
        wallet.pending_balance = to_money(wallet.pending_balance + totals.vendor_amount)
        wallet.lifetime_earnings = to_money(wallet.lifetime_earnings + totals.vendor_amount)
        wallet.updated_at = now
        entries.append(entry)
    return entries


def release_shipment_funds(
    session: Session,
    order: OrderModel,
    shipment: ShipmentModel,
    now: datetime,
) -> list[LedgerEntryModel]:
    entries: list[LedgerEntryModel] = []
    for totals in group_by_payee(shipment.items):
        entry = _append_entry(
            session,
            vendor_id=totals.vendor_id,
            transaction_type=TransactionType.RELEASE,
            balance_status=BalanceStatus.AVAILABLE,
            gross=totals.gross,
            vendor_amount=totals.vendor_amount,
            commission=totals.commission,
            vat=totals.vat,
            description=f"Funds released for delivered shipment {shipment.tracking_number}",
            now=now,
            order_id=order.id,
            shipment_id=shipment.id,
        )
        wallet = lock_wallet(session, totals.vendor_id, now)
        wallet.pending_balance = to_money(wallet.pending_balance - totals.vendor_amount)
        wallet.available_balance = to_money(wallet.available_balance + totals.vendor_amount)
        wallet.updated_at = now
        entries.append(entry)

        stage_event(
            session,
            "FundsReleased",
            {
                "vendor_id": totals.vendor_id,
                "order_id": order.id,
                "shipment_id": shipment.id,
                "amount": totals.vendor_amount,
            },
        )
        logger.info(
            "funds released: vendor=%s shipment=%s amount=%s",
            totals.vendor_id,
            shipment.tracking_number,
            totals.vendor_amount,
        )
    return entries


def _was_released(session: Session, vendor_id: str, shipment_id: str) -> bool:
    session.flush()
    stmt = (
        select(LedgerEntryModel.seq_id)
        .where(LedgerEntryModel.vendor_id == vendor_id)
        .where(LedgerEntryModel.shipment_id == shipment_id)
        .where(LedgerEntryModel.transaction_type == TransactionType.RELEASE)
        .limit(1)
    )
    return session.scalar(stmt) is not None


def reverse_shipment_funds(
    session: Session,
    order: OrderModel,
    shipment: ShipmentModel,
    description: str,
    now: datetime,
) -> list[LedgerEntryModel]:
    entries: list[LedgerEntryModel] = []
    for totals in group_by_payee(shipment.items):
        released = _was_released(session, totals.vendor_id, shipment.id)
        debited = BalanceStatus.AVAILABLE if released else BalanceStatus.PENDING
        entry = _append_entry(
            session,
            vendor_id=totals.vendor_id,
            transaction_type=TransactionType.REFUND,
            balance_status=debited,
            gross=-totals.gross,
            vendor_amount=-totals.vendor_amount,
            commission=-totals.commission,
            vat=-totals.vat,
            description=description,
            now=now,
            order_id=order.id,
            shipment_id=shipment.id,
        )
        wallet = lock_wallet(session, totals.vendor_id, now)
        if released:
            wallet.available_balance = to_money(wallet.available_balance - totals.vendor_amount)
            if wallet.available_balance < 0:
                logger.warning(
                    "available balance negative after reversal: vendor=%s balance=%s",
                    totals.vendor_id,
                    wallet.available_balance,
                )
        else:
            wallet.pending_balance = to_money(wallet.pending_balance - totals.vendor_amount)
        wallet.lifetime_earnings = to_money(wallet.lifetime_earnings - totals.vendor_amount)
        wallet.updated_at = now
        entries.append(entry)

        stage_event(
            session,
            "FundsReversed",
            {
                "vendor_id": totals.vendor_id,
                "order_id": order.id,
                "shipment_id": shipment.id,
                "amount": totals.vendor_amount,
                "debited_balance": debited,
            },
        )
        logger.info(
            "funds reversed: vendor=%s shipment=%s amount=%s from=%s",
            totals.vendor_id,
            shipment.tracking_number,
            totals.vendor_amount,
            debited,
        )
    return entries


def process_payout(
    session: Session,
    vendor_id: str,
    amount: Decimal,
    note: str | None = None,
    now: datetime | None = None,
) -> LedgerEntryModel:
    settings = get_settings()
    now = now or now_utc()
    amount = to_money(amount)
    if amount <= 0:
        raise InvalidInputError("payout amount must be greater than zero", amount=amount)
    if note is not None and len(note) > 500:
        raise InvalidInputError("payout note must not exceed 500 characters")
    if session.get(VendorModel, vendor_id) is None:
        raise NotFoundError("Vendor", vendor_id)

    minimum = to_money(settings.minimum_payout)
    if amount < minimum:
        raise PayoutBelowMinimumError(amount, minimum)

    wallet = session.scalar(
        select(VendorWalletModel).where(VendorWalletModel.vendor_id == vendor_id).with_for_update()
    )
    if wallet is None:
        raise NotFoundError("VendorWallet", vendor_id)
    if wallet.available_balance < amount:
        raise InsufficientBalanceError(vendor_id, wallet.available_balance, amount)

    entry = _append_entry(
        session,
        vendor_id=vendor_id,
        transaction_type=TransactionType.PAYOUT,
        balance_status=BalanceStatus.WITHDRAWN,
        gross=-amount,
        vendor_amount=-amount,
        commission=ZERO,
        vat=ZERO,
        description=note or f"Vendor payout of {amount} EGP",
        now=now,
    )
    wallet.available_balance = to_money(wallet.available_balance - amount)
    wallet.total_payouts = to_money(wallet.total_payouts + amount)
    wallet.updated_at = now
    session.flush()

    stage_event(session, "PayoutProcessed", {"vendor_id": vendor_id, "entry_id": entry.entry_id, "amount": amount})
    logger.info("payout processed: vendor=%s amount=%s", vendor_id, amount)
    return entry


def list_ledger_entries(session: Session, vendor_id: str, limit: int | None = None) -> list[LedgerEntryModel]:
    stmt = select(LedgerEntryModel).where(LedgerEntryModel.vendor_id == vendor_id).order_by(LedgerEntryModel.seq_id.asc())
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(session.scalars(stmt).all())


def ledger_balance(entries: Iterable[LedgerEntryModel]) -> Decimal:
    # Releases move money between balances, so they do not change pending + available.
    return money_sum(
        entry.vendor_amount
        for entry in entries
        if entry.transaction_type in {TransactionType.SALE, TransactionType.REFUND, TransactionType.PAYOUT}
    )


def wallet_snapshot(session: Session, vendor_id: str) -> dict:
    if session.get(VendorModel, vendor_id) is None:
        raise NotFoundError("Vendor", vendor_id)
    wallet = session.get(VendorWalletModel, vendor_id)
    if wallet is None:
        return {
            "vendor_id": vendor_id,
            "pending_balance": ZERO,
            "available_balance": ZERO,
            "lifetime_earnings": ZERO,
            "total_payouts": ZERO,
        }
    return {
        "vendor_id": vendor_id,
        "pending_balance": wallet.pending_balance,
        "available_balance": wallet.available_balance,
        "lifetime_earnings": wallet.lifetime_earnings,
        "total_payouts": wallet.total_payouts,
    }
