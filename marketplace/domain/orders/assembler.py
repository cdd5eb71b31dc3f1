from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from marketplace.core.clock import now_utc
from marketplace.core.config import get_settings
from marketplace.core.errors import (
    InsufficientStockError,
    NotFoundError,
    ProductUnavailableError,
    ZoneMismatchError,
)
from marketplace.core.money import ZERO, allocate_pro_rata, money_sum, round_half_away, to_money
from marketplace.domain.inventory import READY_STOCK, decrement_stock
from marketplace.domain.orders.status import OrderStatus
from marketplace.domain.wallet.ledger import credit_pending_sales
from marketplace.events import stage_event
from marketplace.persistence.models import (
    CustomerModel,
    LedgerEntryModel,
    OrderItemModel,
    OrderModel,
    PickupLocationModel,
    ProductModel,
    ShipmentModel,
    ShippingZoneModel,
    TransactionSplitModel,
    VendorModel,
)
from marketplace.shipping.fees import VOLUMETRIC_DIVISOR, ShippingFeeResult, calculate_weight_based_fee
from marketplace.shipping.rate_cards import get_rates

logger = logging.getLogger(__name__)

PaymentMethod = Literal["cod", "fawry", "card", "wallet"]


class OrderLineRequest(BaseModel):
    product_id: str = Field(min_length=1)
    quantity: int = Field(gt=0)


class CreateOrderRequest(BaseModel):
    customer_id: str = Field(min_length=1)
    items: list[OrderLineRequest] = Field(min_length=1)
    delivery_address: str = Field(min_length=1, max_length=500)
    delivery_zone_id: str = Field(min_length=1)
    payment_method: PaymentMethod = "cod"


class ItemSplit(BaseModel):
    order_item_id: str
    product_id: str
    shipment_id: str | None
    vendor_id: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    bucket_a: Decimal
    bucket_b: Decimal
    bucket_c: Decimal
    bucket_d: Decimal
    bucket_e: Decimal


class ShipmentSummary(BaseModel):
    shipment_id: str
    tracking_number: str
    pickup_location_id: str
    status: str
    item_count: int
    total_weight: Decimal
    volumetric_weight: Decimal
    items_total: Decimal
    shipping_fee_total: Decimal
    platform_subsidy: Decimal
    delivery_fee: Decimal
    cod_amount_due: Decimal


class OrderPlacementResult(BaseModel):
    order_id: str
    order_number: str
    customer_id: str
    status: str
    payment_method: str
    delivery_zone_id: str
    subtotal: Decimal
    total_delivery_fee: Decimal
    total_amount: Decimal
    items: list[ItemSplit]
    shipments: list[ShipmentSummary]
    ledger_entry_ids: list[str]


def _order_number(now: datetime) -> str:
    return f"ORD-{now:%Y%m%d}-{uuid4().hex[:6].upper()}"


def _tracking_number(now: datetime, sequence: int) -> str:
    return f"TRK-{now:%Y%m%d}-{uuid4().hex[:4].upper()}-{sequence:02d}"


def _load_products(session: Session, product_ids: list[str]) -> dict[str, ProductModel]:
    rows = session.scalars(select(ProductModel).where(ProductModel.id.in_(product_ids))).all()
    products = {row.id: row for row in rows}
    missing = [pid for pid in product_ids if pid not in products]
    if missing:
        raise NotFoundError("Product", ", ".join(missing))
    return products


def _validate_products(
    request: CreateOrderRequest,
    products: dict[str, ProductModel],
    locations: dict[str, PickupLocationModel],
) -> None:
    requested: "OrderedDict[str, int]" = OrderedDict()
    for line in request.items:
        requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

    for product_id, quantity in requested.items():
        product = products[product_id]
        if product.status != "active":
            raise ProductUnavailableError(product_id, product.status)
        if product.stock_mode == READY_STOCK and product.quantity_available < quantity:
            raise InsufficientStockError(product_id, quantity, product.quantity_available)
        if product.is_local_only:
            zone_id = locations[product.pickup_location_id].zone_id
            if zone_id != request.delivery_zone_id:
                raise ZoneMismatchError(product_id, zone_id, request.delivery_zone_id)


def _shipment_fee(
    session: Session,
    lines: list[tuple[ProductModel, int]],
    from_zone: str,
    to_zone: str,
    subsidy: Decimal,
) -> tuple[Decimal, Decimal, ShippingFeeResult]:
    total_weight = sum((product.weight_kg * qty for product, qty in lines), Decimal(0))
    volume = sum(
        (product.length_cm * product.width_cm * product.height_cm * qty for product, qty in lines),
        Decimal(0),
    )
    volumetric = round_half_away(volume / VOLUMETRIC_DIVISOR, 2)
    rates = get_rates(session, from_zone, to_zone)
    fee = calculate_weight_based_fee(total_weight, volumetric, rates, subsidy=subsidy)
    return total_weight, volumetric, fee


def create_order(session: Session, request: CreateOrderRequest, now: datetime | None = None) -> OrderPlacementResult:
    settings = get_settings()
    now = now or now_utc()

    if session.get(CustomerModel, request.customer_id) is None:
        raise NotFoundError("Customer", request.customer_id)
    if session.get(ShippingZoneModel, request.delivery_zone_id) is None:
        raise NotFoundError("ShippingZone", request.delivery_zone_id)

    product_ids = list(OrderedDict.fromkeys(line.product_id for line in request.items))
    products = _load_products(session, product_ids)
    location_ids = {product.pickup_location_id for product in products.values()}
    locations = {
        row.id: row
        for row in session.scalars(select(PickupLocationModel).where(PickupLocationModel.id.in_(location_ids))).all()
    }
    vendor_ids = {product.vendor_id for product in products.values()}
    vendors = {row.id: row for row in session.scalars(select(VendorModel).where(VendorModel.id.in_(vendor_ids))).all()}

    _validate_products(request, products, locations)

    # Group request lines by pickup location, keeping first-seen order.
    groups: "OrderedDict[str, list[tuple[ProductModel, int]]]" = OrderedDict()
    for line in request.items:
        product = products[line.product_id]
        groups.setdefault(product.pickup_location_id, []).append((product, line.quantity))

    # Rate cards are resolved before anything is written.
    fees: dict[str, tuple[Decimal, Decimal, ShippingFeeResult]] = {}
    for location_id, lines in groups.items():
        fees[location_id] = _shipment_fee(
            session,
            lines,
            from_zone=locations[location_id].zone_id,
            to_zone=request.delivery_zone_id,
            subsidy=to_money(settings.shipping_subsidy),
        )

    order = OrderModel(
        id=str(uuid4()),
        order_number=_order_number(now),
        customer_id=request.customer_id,
        status=OrderStatus.PENDING.value,
        payment_method=request.payment_method,
        delivery_address=request.delivery_address,
        delivery_zone_id=request.delivery_zone_id,
        subtotal=ZERO,
        total_delivery_fee=ZERO,
        total_amount=ZERO,
        created_at=now,
        updated_at=now,
    )
    session.add(order)

    all_items: list[OrderItemModel] = []
    line_no = 0
    for sequence, (location_id, lines) in enumerate(groups.items(), start=1):
        total_weight, volumetric, fee = fees[location_id]
        shipment = ShipmentModel(
            id=str(uuid4()),
            order=order,
            sequence=sequence,
            pickup_location_id=location_id,
            tracking_number=_tracking_number(now, sequence),
            status=OrderStatus.PENDING.value,
            total_weight=total_weight,
            volumetric_weight=volumetric,
            item_count=sum(qty for _, qty in lines),
            items_total=ZERO,
            shipping_fee_total=fee.total_fee,
            platform_subsidy=fee.subsidy_amount,
            delivery_fee=fee.subsidized_fee,
            cod_amount_due=ZERO,
            created_at=now,
            updated_at=now,
        )
        session.add(shipment)

        shipment_items: list[OrderItemModel] = []
        for product, qty in lines:
            line_no += 1
            vendor = vendors[product.vendor_id]
            item = OrderItemModel(
                id=str(uuid4()),
                order=order,
                line_no=line_no,
                shipment=shipment,
                product_id=product.id,
                product_sku=product.sku,
                product_title=product.title,
                vendor_id=product.vendor_id,
                payee_vendor_id=vendor.payee_id,
                pickup_location_id=location_id,
                stock_mode=product.stock_mode,
                quantity=qty,
                unit_price=product.final_price,
                total_price=to_money(product.final_price * qty),
                bucket_a=to_money(product.bucket_a * qty),
                bucket_b=to_money(product.bucket_b * qty),
                bucket_c=to_money(product.bucket_c * qty),
                bucket_d=to_money(product.bucket_d * qty),
                parent_vendor_uplift=to_money(product.parent_vendor_uplift * qty),
                vendor_payout=to_money((product.bucket_a + product.bucket_b) * qty),
                delivery_fee_share=ZERO,
                created_at=now,
            )
            session.add(item)
            shipment_items.append(item)

        shares = allocate_pro_rata(shipment.delivery_fee, [item.total_price for item in shipment_items])
        for item, share in zip(shipment_items, shares):
            item.delivery_fee_share = share

        shipment.items_total = money_sum(item.total_price for item in shipment_items)
        shipment.cod_amount_due = to_money(shipment.items_total + shipment.delivery_fee)
        all_items.extend(shipment_items)

    order.subtotal = money_sum(item.total_price for item in all_items)
    order.total_delivery_fee = money_sum(shipment.delivery_fee for shipment in order.shipments)
    order.total_amount = to_money(order.subtotal + order.total_delivery_fee)

    session.flush()

    # Stock rows are locked in product id order, one conditional update per product.
    reserved: dict[str, int] = {}
    for item in all_items:
        if item.stock_mode == READY_STOCK:
            reserved[item.product_id] = reserved.get(item.product_id, 0) + item.quantity
    for product_id in sorted(reserved):
        decrement_stock(session, product_id, reserved[product_id])

    for item in all_items:
        split = TransactionSplitModel(
            order_id=order.id,
            order_item_id=item.id,
            shipment_id=item.shipment.id,
            product_id=item.product_id,
            vendor_id=item.vendor_id,
            gross_amount=item.total_price,
            bucket_a=item.bucket_a,
            bucket_b=item.bucket_b,
            bucket_c=item.bucket_c,
            bucket_d=item.bucket_d,
            bucket_e=item.delivery_fee_share,
            created_at=now,
        )
        session.add(split)

    credit_pending_sales(session, order, all_items, now)
    session.flush()

    stage_event(
        session,
        "OrderPlaced",
        {
            "order_id": order.id,
            "order_number": order.order_number,
            "customer_id": order.customer_id,
            "shipment_ids": [shipment.id for shipment in order.shipments],
            "subtotal": order.subtotal,
            "total_amount": order.total_amount,
        },
    )
    logger.info(
        "order placed: number=%s shipments=%s total=%s",
        order.order_number,
        len(order.shipments),
        order.total_amount,
    )
    return summarize_order(session, order)


def summarize_order(session: Session, order: OrderModel) -> OrderPlacementResult:
    entry_ids = list(
        session.scalars(
            select(LedgerEntryModel.entry_id)
            .where(LedgerEntryModel.order_id == order.id)
            .order_by(LedgerEntryModel.seq_id.asc())
        ).all()
    )
    return OrderPlacementResult(
        order_id=order.id,
        order_number=order.order_number,
        customer_id=order.customer_id,
        status=order.status,
        payment_method=order.payment_method,
        delivery_zone_id=order.delivery_zone_id,
        subtotal=order.subtotal,
        total_delivery_fee=order.total_delivery_fee,
        total_amount=order.total_amount,
        items=[
            ItemSplit(
                order_item_id=item.id,
                product_id=item.product_id,
                shipment_id=item.shipment_id,
                vendor_id=item.vendor_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=item.total_price,
                bucket_a=item.bucket_a,
                bucket_b=item.bucket_b,
                bucket_c=item.bucket_c,
                bucket_d=item.bucket_d,
                bucket_e=item.delivery_fee_share,
            )
            for item in order.items
        ],
        shipments=[
            ShipmentSummary(
                shipment_id=shipment.id,
                tracking_number=shipment.tracking_number,
                pickup_location_id=shipment.pickup_location_id,
                status=shipment.status,
                item_count=shipment.item_count,
                total_weight=shipment.total_weight,
                volumetric_weight=shipment.volumetric_weight,
                items_total=shipment.items_total,
                shipping_fee_total=shipment.shipping_fee_total,
                platform_subsidy=shipment.platform_subsidy,
                delivery_fee=shipment.delivery_fee,
                cod_amount_due=shipment.cod_amount_due,
            )
            for shipment in order.shipments
        ],
        ledger_entry_ids=entry_ids,
    )


def get_order(session: Session, order_id: str) -> OrderPlacementResult:
    order = session.get(OrderModel, order_id)
    if order is None:
        raise NotFoundError("Order", order_id)
    return summarize_order(session, order)
