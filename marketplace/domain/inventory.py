from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from marketplace.core.errors import InsufficientStockError
from marketplace.persistence.models import OrderItemModel, ProductModel

logger = logging.getLogger(__name__)

READY_STOCK = "ready_stock"
MADE_TO_ORDER = "made_to_order"


def decrement_stock(session: Session, product_id: str, quantity: int) -> None:
    # Conditional decrement: the WHERE clause re-checks availability at write time.
    result = session.execute(
        update(ProductModel)
        .where(ProductModel.id == product_id)
        .where(ProductModel.quantity_available >= quantity)
        .values(quantity_available=ProductModel.quantity_available - quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        available = session.scalar(select(ProductModel.quantity_available).where(ProductModel.id == product_id))
        logger.warning(
            "stock conflict: product=%s requested=%s available=%s",
            product_id,
            quantity,
            available,
        )
        raise InsufficientStockError(product_id, quantity, int(available or 0))
    _expire_quantity(session, product_id)


def restore_stock(session: Session, items: Iterable[OrderItemModel]) -> None:
    returned: dict[str, int] = {}
    for item in items:
        if item.stock_mode == READY_STOCK:
            returned[item.product_id] = returned.get(item.product_id, 0) + item.quantity
    for product_id in sorted(returned):
        session.execute(
            update(ProductModel)
            .where(ProductModel.id == product_id)
            .values(quantity_available=ProductModel.quantity_available + returned[product_id])
            .execution_options(synchronize_session=False)
        )
        _expire_quantity(session, product_id)


def _expire_quantity(session: Session, product_id: str) -> None:
    product = session.identity_map.get(session.identity_key(ProductModel, product_id))
    if product is not None:
        session.expire(product, ["quantity_available"])
