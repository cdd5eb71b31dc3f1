from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from marketplace.core.clock import now_utc
from marketplace.domain.catalog import reprice_product
from marketplace.domain.inventory import MADE_TO_ORDER, READY_STOCK
from marketplace.persistence.models import (
    CategoryModel,
    CustomerModel,
    PickupLocationModel,
    ProductModel,
    RateCardModel,
    ShippingZoneModel,
    VendorModel,
)
from marketplace.pricing.categories import DEFAULT_CATEGORY_RATES

logger = logging.getLogger(__name__)

DEMO_CUSTOMER_ID = "customer-demo"

ZONES = [
    ("cairo", "Cairo", 2),
    ("giza", "Giza", 2),
    ("alexandria", "Alexandria", 3),
]

SAME_ZONE_RATES = (Decimal("45.00"), Decimal("8.00"))
CROSS_ZONE_RATES = (Decimal("55.00"), Decimal("10.00"))

VENDORS = [
    {
        "id": "vendor-khan-silver",
        "business_name": "Khan Silver Works",
        "is_vat_registered": True,
        "is_legalized": True,
    },
    {
        "id": "vendor-siwa-collective",
        "business_name": "Siwa Collective",
        "is_vat_registered": False,
        "is_legalized": True,
    },
    {
        "id": "vendor-siwa-weavers",
        "business_name": "Siwa Weavers",
        "parent_vendor_id": "vendor-siwa-collective",
        "is_vat_registered": False,
        "is_legalized": False,
        "uplift_type": "fixed",
        "uplift_value": Decimal("30.00"),
    },
]

PICKUP_LOCATIONS = [
    ("pickup-khan", "vendor-khan-silver", "cairo", "Khan el-Khalili workshop"),
    ("pickup-siwa", "vendor-siwa-collective", "alexandria", "Siwa Collective depot"),
    ("pickup-siwa-weavers", "vendor-siwa-weavers", "giza", "Weavers studio"),
]

PRODUCTS = [
    {
        "id": "prod-silver-ring",
        "sku": "KSW-RING-001",
        "title": "Hand-engraved silver ring",
        "vendor_id": "vendor-khan-silver",
        "category_id": "jewelry-accessories",
        "pickup_location_id": "pickup-khan",
        "vendor_base_price": Decimal("400.00"),
        "quantity_available": 20,
        "weight_kg": Decimal("0.2"),
        "dims": (Decimal("10"), Decimal("10"), Decimal("5")),
    },
    {
        "id": "prod-woven-rug",
        "sku": "SWV-RUG-001",
        "title": "Siwa hand-woven rug",
        "vendor_id": "vendor-siwa-weavers",
        "category_id": "home-decor-textiles",
        "pickup_location_id": "pickup-siwa-weavers",
        "vendor_base_price": Decimal("500.00"),
        "quantity_available": 5,
        "weight_kg": Decimal("1.5"),
        "dims": (Decimal("20"), Decimal("20"), Decimal("35")),
    },
    {
        "id": "prod-olive-soap",
        "sku": "SWC-SOAP-001",
        "title": "Olive oil soap bar",
        "vendor_id": "vendor-siwa-collective",
        "category_id": "beauty-personal",
        "pickup_location_id": "pickup-siwa",
        "vendor_base_price": Decimal("60.00"),
        "quantity_available": 50,
        "is_local_only": True,
        "weight_kg": Decimal("0.3"),
        "dims": (Decimal("8"), Decimal("6"), Decimal("4")),
    },
    {
        "id": "prod-carved-box",
        "sku": "KSW-BOX-001",
        "title": "Carved walnut jewelry box",
        "vendor_id": "vendor-khan-silver",
        "category_id": "furniture-woodwork",
        "pickup_location_id": "pickup-khan",
        "vendor_base_price": Decimal("900.00"),
        "stock_mode": MADE_TO_ORDER,
        "quantity_available": 0,
        "weight_kg": Decimal("2.0"),
        "dims": (Decimal("30"), Decimal("20"), Decimal("15")),
    },
]


def _existing(session: Session) -> dict[str, Any] | None:
    if session.get(CustomerModel, DEMO_CUSTOMER_ID) is None:
        return None
    return _result(seeded_now=False)


def _result(seeded_now: bool) -> dict[str, Any]:
    return {
        "seeded_now": seeded_now,
        "customer_id": DEMO_CUSTOMER_ID,
        "zones": [zone_id for zone_id, _, _ in ZONES],
        "vendors": [row["id"] for row in VENDORS],
        "pickup_locations": [row[0] for row in PICKUP_LOCATIONS],
        "products": {row["sku"]: row["id"] for row in PRODUCTS},
    }


def seed_demo_catalog(session: Session, now: datetime | None = None) -> dict[str, Any]:
    existing = _existing(session)
    if existing is not None:
        return existing
    now = now or now_utc()

    for zone_id, name, days in ZONES:
        session.add(ShippingZoneModel(id=zone_id, name=name, estimated_delivery_days=days))
    for from_zone, _, _ in ZONES:
        for to_zone, _, _ in ZONES:
            base_fee, per_kg_rate = SAME_ZONE_RATES if from_zone == to_zone else CROSS_ZONE_RATES
            session.add(
                RateCardModel(from_zone_id=from_zone, to_zone_id=to_zone, base_fee=base_fee, per_kg_rate=per_kg_rate)
            )

    for rate in DEFAULT_CATEGORY_RATES.values():
        session.add(
            CategoryModel(
                id=rate.category_id,
                name=rate.category_id.replace("-", " ").title(),
                default_uplift_rate=rate.default_rate,
                min_uplift_rate=rate.min_rate,
                max_uplift_rate=rate.max_rate,
                pinned_uplift_rate=rate.pinned_rate,
            )
        )

    for row in VENDORS:
        session.add(VendorModel(**row))
    session.flush()

    for location_id, vendor_id, zone_id, label in PICKUP_LOCATIONS:
        session.add(PickupLocationModel(id=location_id, vendor_id=vendor_id, zone_id=zone_id, label=label))
    session.add(CustomerModel(id=DEMO_CUSTOMER_ID, name="Demo Customer", phone="+20100000000", created_at=now))
    session.flush()

    for row in PRODUCTS:
        length, width, height = row["dims"]
        session.add(
            ProductModel(
                id=row["id"],
                sku=row["sku"],
                title=row["title"],
                vendor_id=row["vendor_id"],
                category_id=row["category_id"],
                pickup_location_id=row["pickup_location_id"],
                stock_mode=row.get("stock_mode", READY_STOCK),
                quantity_available=row["quantity_available"],
                is_local_only=row.get("is_local_only", False),
                weight_kg=row["weight_kg"],
                length_cm=length,
                width_cm=width,
                height_cm=height,
                cost_price=row["vendor_base_price"],
                vendor_base_price=row["vendor_base_price"],
            )
        )
    session.flush()

    for row in PRODUCTS:
        reprice_product(session, row["id"], now=now)

    logger.info("demo catalog seeded: vendors=%s products=%s", len(VENDORS), len(PRODUCTS))
    return _result(seeded_now=True)
