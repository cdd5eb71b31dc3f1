from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from marketplace.core.clock import now_utc
from marketplace.core.errors import NotFoundError
from marketplace.core.money import to_money
from marketplace.pricing.calculator import (
    ParentUplift,
    PriceDeviationResult,
    PricingInput,
    PricingResult,
    calculate_price,
    check_price_deviation,
)
from marketplace.pricing.categories import CategoryRate
from marketplace.persistence.models import CategoryModel, ProductModel, VendorModel
from marketplace.shipping.fees import volumetric_weight

logger = logging.getLogger(__name__)


class RepriceResult(BaseModel):
    product_id: str
    sku: str
    previous_price: Decimal
    pricing: PricingResult
    volumetric_weight: Decimal
    deviation: PriceDeviationResult | None = None


class RepriceRequest(BaseModel):
    vendor_base_price: Decimal | None = Field(default=None, gt=0)
    custom_category_rate: Decimal | None = Field(default=None, ge=0, le=1)


def build_category_rates(session: Session) -> dict[str, CategoryRate]:
    rows = session.scalars(select(CategoryModel)).all()
    return {
        row.id.strip().lower(): CategoryRate(
            category_id=row.id,
            default_rate=row.default_uplift_rate,
            min_rate=row.min_uplift_rate,
            max_rate=row.max_uplift_rate,
            pinned_rate=row.pinned_uplift_rate,
        )
        for row in rows
    }


def pricing_input_for(
    product: ProductModel,
    vendor: VendorModel,
    vendor_base_price: Decimal | None = None,
    custom_category_rate: Decimal | None = None,
) -> PricingInput:
    parent_uplift = None
    if vendor.parent_vendor_id and vendor.uplift_type and vendor.uplift_value is not None:
        parent_uplift = ParentUplift(type=vendor.uplift_type, value=vendor.uplift_value)
    return PricingInput(
        vendor_base_price=vendor_base_price if vendor_base_price is not None else product.vendor_base_price,
        category_id=product.category_id,
        is_vendor_vat_registered=vendor.is_vat_registered,
        is_vendor_legalized=vendor.is_legalized,
        parent_uplift=parent_uplift,
        custom_uplift_override=vendor.custom_uplift_override,
        custom_category_rate=custom_category_rate,
    )


def category_average_price(session: Session, category_id: str, exclude_product_id: str | None = None) -> Decimal | None:
    stmt = select(ProductModel.final_price).where(ProductModel.category_id == category_id).where(ProductModel.final_price > 0)
    if exclude_product_id is not None:
        stmt = stmt.where(ProductModel.id != exclude_product_id)
    prices = list(session.scalars(stmt).all())
    if not prices:
        return None
    return to_money(sum(prices, Decimal(0)) / len(prices))


def apply_pricing(product: ProductModel, result: PricingResult, now: datetime) -> None:
    product.vendor_base_price = result.vendor_base_price
    product.cooperative_fee = result.cooperative_fee
    product.parent_vendor_uplift = result.parent_vendor_uplift
    product.marketplace_uplift = result.marketplace_uplift
    product.logistics_surcharge = result.logistics_surcharge
    product.bucket_a = result.bucket_a
    product.bucket_b = result.bucket_b
    product.bucket_c = result.bucket_c
    product.bucket_d = result.bucket_d
    product.final_price = result.final_price
    product.volumetric_weight = volumetric_weight(product.length_cm, product.width_cm, product.height_cm)
    product.priced_at = now


def reprice_product(
    session: Session,
    product_id: str,
    vendor_base_price: Decimal | None = None,
    custom_category_rate: Decimal | None = None,
    now: datetime | None = None,
) -> RepriceResult:
    now = now or now_utc()
    product = session.scalar(select(ProductModel).where(ProductModel.id == product_id).with_for_update())
    if product is None:
        raise NotFoundError("Product", product_id)
    vendor = session.get(VendorModel, product.vendor_id)
    if vendor is None:
        raise NotFoundError("Vendor", product.vendor_id)

    previous_price = product.final_price
    pricing_input = pricing_input_for(product, vendor, vendor_base_price, custom_category_rate)
    result = calculate_price(pricing_input, category_rates=build_category_rates(session))
    apply_pricing(product, result, now)
    session.flush()

    deviation = None
    average = category_average_price(session, product.category_id, exclude_product_id=product.id)
    if average is not None:
        deviation = check_price_deviation(result.final_price, average)
        if deviation.is_flagged:
            logger.warning(
                "price deviation flagged: sku=%s price=%s category_avg=%s deviation=%s",
                product.sku,
                result.final_price,
                average,
                deviation.deviation,
            )

    logger.info("product repriced: sku=%s from=%s to=%s", product.sku, previous_price, result.final_price)
    return RepriceResult(
        product_id=product.id,
        sku=product.sku,
        previous_price=previous_price,
        pricing=result,
        volumetric_weight=product.volumetric_weight,
        deviation=deviation,
    )
