from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator


class OrderPlacedPayload(BaseModel):
    order_id: str
    order_number: str
    customer_id: str
    shipment_ids: list[str]
    subtotal: Decimal
    total_amount: Decimal


class OrderStatusChangedPayload(BaseModel):
    order_id: str
    shipment_id: str | None = None
    previous_status: str
    new_status: str


class FundsReleasedPayload(BaseModel):
    vendor_id: str
    order_id: str
    shipment_id: str
    amount: Decimal


class FundsReversedPayload(BaseModel):
    vendor_id: str
    order_id: str
    shipment_id: str | None = None
    amount: Decimal
    debited_balance: Literal["pending", "available"]


class PayoutProcessedPayload(BaseModel):
    vendor_id: str
    entry_id: str
    amount: Decimal


PAYLOAD_MODELS: dict[str, type[BaseModel]] = {
    "OrderPlaced": OrderPlacedPayload,
    "OrderStatusChanged": OrderStatusChangedPayload,
    "FundsReleased": FundsReleasedPayload,
    "FundsReversed": FundsReversedPayload,
    "PayoutProcessed": PayoutProcessedPayload,
}


class DomainEvent(BaseModel):
    event_id: UUID = Field(default_factory=uuid4)
    event_type: str
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    payload: dict[str, Any]

    @field_validator("event_type")
    @classmethod
    def _known_type(cls, value: str) -> str:
        if value not in PAYLOAD_MODELS:
            raise ValueError(f"unsupported event_type: {value}")
        return value

    @field_validator("payload")
    @classmethod
    def _validate_payload(cls, value: dict[str, Any], info):
        model = PAYLOAD_MODELS.get(info.data.get("event_type"))
        if model is None:
            return value
        return model.model_validate(value).model_dump(mode="json")
