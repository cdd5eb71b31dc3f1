from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from marketplace.api.utils import iso, money_fields
from marketplace.core.errors import NotFoundError
from marketplace.domain.wallet.ledger import list_ledger_entries, process_payout, wallet_snapshot
from marketplace.persistence.db import get_session
from marketplace.persistence.models import VendorModel
from marketplace.reconciliation.rules import all_passed, run_vendor_reconciliation

router = APIRouter(tags=["vendors"])


class PayoutRequest(BaseModel):
    amount: Decimal = Field(gt=0)
    note: str | None = Field(default=None, max_length=500)


def _entry_row(entry) -> dict:
    return money_fields(
        {
            "seq_id": entry.seq_id,
            "entry_id": entry.entry_id,
            "order_id": entry.order_id,
            "shipment_id": entry.shipment_id,
            "transaction_type": entry.transaction_type,
            "balance_status": entry.balance_status,
            "gross_amount": entry.gross_amount,
            "vendor_amount": entry.vendor_amount,
            "commission_amount": entry.commission_amount,
            "vat_amount": entry.vat_amount,
            "description": entry.description,
            "created_at": iso(entry.created_at),
        }
    )


@router.get("/vendors/{vendor_id}/wallet")
def read_wallet(vendor_id: str, session: Session = Depends(get_session)):
    return money_fields(wallet_snapshot(session, vendor_id))


@router.get("/vendors/{vendor_id}/ledger")
def read_ledger(
    vendor_id: str,
    limit: int = Query(default=100, ge=1, le=1000),
    session: Session = Depends(get_session),
):
    if session.get(VendorModel, vendor_id) is None:
        raise NotFoundError("Vendor", vendor_id)
    rows = list_ledger_entries(session, vendor_id, limit=limit)
    return {
        "vendor_id": vendor_id,
        "count": len(rows),
        "entries": [_entry_row(row) for row in rows],
    }


@router.post("/vendors/{vendor_id}/payouts", status_code=201)
def request_payout(vendor_id: str, payload: PayoutRequest, session: Session = Depends(get_session)):
    entry = process_payout(session, vendor_id, payload.amount, note=payload.note)
    return {
        "entry": _entry_row(entry),
        "wallet": money_fields(wallet_snapshot(session, vendor_id)),
    }


@router.get("/vendors/{vendor_id}/reconciliation")
def reconcile_vendor(vendor_id: str, session: Session = Depends(get_session)):
    results = run_vendor_reconciliation(session, vendor_id)
    return {
        "vendor_id": vendor_id,
        "passed": all_passed(results),
        "results": [result.to_dict() for result in results],
    }
