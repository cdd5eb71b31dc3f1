from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from marketplace.domain.orders.assembler import CreateOrderRequest, create_order, get_order
from marketplace.domain.orders.transitions import StatusUpdateRequest, update_status
from marketplace.domain.wallet.escrow import order_escrow
from marketplace.persistence.db import get_session
from marketplace.reconciliation.rules import all_passed, run_order_reconciliation

router = APIRouter(tags=["orders"])


@router.post("/orders", status_code=201)
def place_order(payload: CreateOrderRequest, session: Session = Depends(get_session)):
    return create_order(session, payload)


@router.get("/orders/{order_id}")
def read_order(order_id: str, session: Session = Depends(get_session)):
    return get_order(session, order_id)


@router.post("/orders/{order_id}/status")
def change_status(order_id: str, payload: StatusUpdateRequest, session: Session = Depends(get_session)):
    return update_status(
        session,
        order_id,
        payload.status,
        shipment_id=payload.shipment_id,
        note=payload.note,
    )


@router.get("/orders/{order_id}/escrow")
def read_escrow(order_id: str, session: Session = Depends(get_session)):
    return order_escrow(session, order_id)


@router.get("/orders/{order_id}/reconciliation")
def reconcile_order(order_id: str, session: Session = Depends(get_session)):
    results = run_order_reconciliation(session, order_id)
    return {
        "order_id": order_id,
        "passed": all_passed(results),
        "results": [result.to_dict() for result in results],
    }
