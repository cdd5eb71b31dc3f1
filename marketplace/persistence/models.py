from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from marketplace.persistence.types import FixedPoint


def _json_type():
    return JSON().with_variant(JSONB(astext_type=Text()), "postgresql")


def _uuid() -> str:
    return str(uuid.uuid4())


MONEY = FixedPoint(2)
WEIGHT = FixedPoint(3)
LENGTH = FixedPoint(2)
RATE = FixedPoint(4)


class Base(DeclarativeBase):
    pass


class CustomerModel(Base):
    __tablename__ = "customers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class ShippingZoneModel(Base):
    __tablename__ = "shipping_zones"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    estimated_delivery_days: Mapped[int] = mapped_column(Integer, default=3, nullable=False)


class RateCardModel(Base):
    __tablename__ = "rate_cards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    from_zone_id: Mapped[str] = mapped_column(String(64), ForeignKey("shipping_zones.id"), nullable=False)
    to_zone_id: Mapped[str] = mapped_column(String(64), ForeignKey("shipping_zones.id"), nullable=False)
    base_fee: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    per_kg_rate: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class CategoryModel(Base):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    default_uplift_rate: Mapped[Decimal] = mapped_column(RATE, nullable=False)
    min_uplift_rate: Mapped[Optional[Decimal]] = mapped_column(RATE, nullable=True)
    max_uplift_rate: Mapped[Optional[Decimal]] = mapped_column(RATE, nullable=True)
    pinned_uplift_rate: Mapped[Optional[Decimal]] = mapped_column(RATE, nullable=True)


class VendorModel(Base):
    __tablename__ = "vendors"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    business_name: Mapped[str] = mapped_column(String(200), nullable=False)
    parent_vendor_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("vendors.id"), nullable=True)
    is_vat_registered: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_legalized: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # Uplift the parent vendor adds on top of this vendor's base price: fixed | percentage.
    uplift_type: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    uplift_value: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    custom_uplift_override: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)

    @property
    def payee_id(self) -> str:
        return self.parent_vendor_id or self.id


class PickupLocationModel(Base):
    __tablename__ = "pickup_locations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    vendor_id: Mapped[str] = mapped_column(String(36), ForeignKey("vendors.id"), nullable=False)
    zone_id: Mapped[str] = mapped_column(String(64), ForeignKey("shipping_zones.id"), nullable=False)
    label: Mapped[str] = mapped_column(String(200), nullable=False)


class ProductModel(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    sku: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    vendor_id: Mapped[str] = mapped_column(String(36), ForeignKey("vendors.id"), nullable=False)
    category_id: Mapped[str] = mapped_column(String(64), ForeignKey("categories.id"), nullable=False)
    pickup_location_id: Mapped[str] = mapped_column(String(36), ForeignKey("pickup_locations.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="active", nullable=False)
    stock_mode: Mapped[str] = mapped_column(String(16), default="ready_stock", nullable=False)
    quantity_available: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_local_only: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    weight_kg: Mapped[Decimal] = mapped_column(WEIGHT, nullable=False)
    length_cm: Mapped[Decimal] = mapped_column(LENGTH, nullable=False)
    width_cm: Mapped[Decimal] = mapped_column(LENGTH, nullable=False)
    height_cm: Mapped[Decimal] = mapped_column(LENGTH, nullable=False)
    volumetric_weight: Mapped[Decimal] = mapped_column(WEIGHT, default=Decimal("0"), nullable=False)

    # Pricing snapshot, written by repricing and trusted verbatim at order time.
    cost_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    vendor_base_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    cooperative_fee: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"), nullable=False)
    parent_vendor_uplift: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"), nullable=False)
    marketplace_uplift: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"), nullable=False)
    logistics_surcharge: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"), nullable=False)
    bucket_a: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"), nullable=False)
    bucket_b: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"), nullable=False)
    bucket_c: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"), nullable=False)
    bucket_d: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"), nullable=False)
    final_price: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"), nullable=False)
    priced_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class OrderModel(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    order_number: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    customer_id: Mapped[str] = mapped_column(String(36), ForeignKey("customers.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(32), default="pending", nullable=False)
    payment_method: Mapped[str] = mapped_column(String(16), nullable=False)
    delivery_address: Mapped[str] = mapped_column(String(500), nullable=False)
    delivery_zone_id: Mapped[str] = mapped_column(String(64), ForeignKey("shipping_zones.id"), nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_delivery_fee: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    items: Mapped[list["OrderItemModel"]] = relationship(
        back_populates="order", order_by="OrderItemModel.line_no"
    )
    shipments: Mapped[list["ShipmentModel"]] = relationship(
        back_populates="order", order_by="ShipmentModel.sequence"
    )


class ShipmentModel(Base):
    __tablename__ = "shipments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("orders.id"), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    pickup_location_id: Mapped[str] = mapped_column(String(36), ForeignKey("pickup_locations.id"), nullable=False)
    tracking_number: Mapped[str] = mapped_column(String(40), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(String(32), default="pending", nullable=False)
    total_weight: Mapped[Decimal] = mapped_column(WEIGHT, nullable=False)
    volumetric_weight: Mapped[Decimal] = mapped_column(WEIGHT, nullable=False)
    item_count: Mapped[int] = mapped_column(Integer, nullable=False)
    items_total: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    shipping_fee_total: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    platform_subsidy: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    delivery_fee: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    cod_amount_due: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    order: Mapped[OrderModel] = relationship(back_populates="shipments")
    items: Mapped[list["OrderItemModel"]] = relationship(
        back_populates="shipment", order_by="OrderItemModel.line_no"
    )


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("orders.id"), nullable=False)
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    shipment_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("shipments.id"), nullable=True)
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("products.id"), nullable=False)
    product_sku: Mapped[str] = mapped_column(String(64), nullable=False)
    product_title: Mapped[str] = mapped_column(String(300), nullable=False)
    vendor_id: Mapped[str] = mapped_column(String(36), nullable=False)
    payee_vendor_id: Mapped[str] = mapped_column(String(36), nullable=False)
    pickup_location_id: Mapped[str] = mapped_column(String(36), nullable=False)
    stock_mode: Mapped[str] = mapped_column(String(16), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    bucket_a: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    bucket_b: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    bucket_c: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    bucket_d: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    parent_vendor_uplift: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    vendor_payout: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    delivery_fee_share: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    order: Mapped[OrderModel] = relationship(back_populates="items")
    shipment: Mapped[Optional[ShipmentModel]] = relationship(back_populates="items")


class TransactionSplitModel(Base):
    __tablename__ = "transaction_splits"
    __table_args__ = (UniqueConstraint("order_item_id", name="uq_transaction_split_item"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("orders.id"), nullable=False)
    order_item_id: Mapped[str] = mapped_column(String(36), ForeignKey("order_items.id"), nullable=False)
    shipment_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    product_id: Mapped[str] = mapped_column(String(36), nullable=False)
    vendor_id: Mapped[str] = mapped_column(String(36), nullable=False)
    gross_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    bucket_a: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    bucket_b: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    bucket_c: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    bucket_d: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    bucket_e: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class VendorWalletModel(Base):
    __tablename__ = "vendor_wallets"

    vendor_id: Mapped[str] = mapped_column(String(36), ForeignKey("vendors.id"), primary_key=True)
    pending_balance: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"), nullable=False)
    available_balance: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"), nullable=False)
    lifetime_earnings: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"), nullable=False)
    total_payouts: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class LedgerEntryModel(Base):
    __tablename__ = "ledger_entries"

    seq_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entry_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False, default=_uuid)
    vendor_id: Mapped[str] = mapped_column(String(36), nullable=False)
    order_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    shipment_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    transaction_type: Mapped[str] = mapped_column(String(16), nullable=False)
    balance_status: Mapped[str] = mapped_column(String(16), nullable=False)
    gross_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    vendor_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    commission_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    vat_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class OutboxEventModel(Base):
    __tablename__ = "outbox_events"

    seq_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    payload: Mapped[dict] = mapped_column(_json_type(), nullable=False)


Index("ix_ledger_entries_vendor", LedgerEntryModel.vendor_id, LedgerEntryModel.seq_id)
Index("ix_ledger_entries_order", LedgerEntryModel.order_id)
Index("ix_order_items_order", OrderItemModel.order_id)
Index("ix_shipments_order", ShipmentModel.order_id)
Index("ix_rate_cards_pair", RateCardModel.from_zone_id, RateCardModel.to_zone_id)
Index("ix_outbox_events_type", OutboxEventModel.event_type)
