from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from marketplace.api.utils import iso, money_fields, parse_period
from marketplace.core.errors import InvalidInputError
from marketplace.domain.accounting.reports import generate_finance_report
from marketplace.persistence.db import get_session

router = APIRouter(tags=["reports"])


@router.get("/reports/finance")
def get_finance_report(
    period: str | None = Query(default=None, description="ISO period: start/end"),
    session: Session = Depends(get_session),
):
    start = end = None
    if period:
        try:
            start, end = parse_period(period)
        except ValueError as exc:
            raise InvalidInputError(str(exc), period=period) from exc

    report = generate_finance_report(session, start=start, end=end)
    return {
        "period": {"start": iso(start), "end": iso(end)},
        "report": money_fields(report),
    }
