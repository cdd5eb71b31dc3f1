from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from marketplace.core.clock import as_utc


def parse_period(period: str) -> tuple[datetime, datetime]:
    if "/" not in period:
        raise ValueError("period must be start/end")
    start_text, end_text = period.split("/", 1)
    start = as_utc(datetime.fromisoformat(start_text.replace("Z", "+00:00")))
    end = as_utc(datetime.fromisoformat(end_text.replace("Z", "+00:00")))
    if not end > start:
        raise ValueError("period end must be greater than start")
    return start, end


def iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return as_utc(value).isoformat().replace("+00:00", "Z")


def money_fields(row: dict[str, Any]) -> dict[str, Any]:
    # Decimal amounts leave the API as strings so no float ever carries money.
    return {key: str(value) if isinstance(value, Decimal) else value for key, value in row.items()}
