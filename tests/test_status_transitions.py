from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import func, select

import marketplace.persistence.db as db
from marketplace.core.errors import IllegalTransitionError, InvalidInputError, NotFoundError
from marketplace.domain.orders import OrderStatus, parse_status, update_status, validate_transition
from marketplace.domain.orders.status import is_behind
from marketplace.persistence.models import LedgerEntryModel, OrderModel, ProductModel, VendorWalletModel


def _move(order_id: str, status: str, shipment_id: str | None = None):
    with db.session_scope() as s:
        return update_status(s, order_id, status, shipment_id=shipment_id)


def _ship(order_id: str):
    for status in ("accepted", "ready_to_ship", "in_transit"):
        _move(order_id, status)


def _wallet(vendor_id: str) -> VendorWalletModel:
    with db.session_scope() as s:
        return s.get(VendorWalletModel, vendor_id)


def _stock(product_id: str) -> int:
    with db.session_scope() as s:
        return s.get(ProductModel, product_id).quantity_available


def _ledger_count() -> int:
    with db.session_scope() as s:
        return s.scalar(select(func.count()).select_from(LedgerEntryModel))


@pytest.mark.parametrize(
    "current,requested",
    [
        ("pending", "accepted"),
        ("pending", "cancelled"),
        ("accepted", "ready_to_ship"),
        ("accepted", "cancelled"),
        ("ready_to_ship", "in_transit"),
        ("in_transit", "delivered"),
        ("in_transit", "rejected_shipping"),
        ("delivered", "returned"),
    ],
)
def test_legal_transitions(current, requested):
    validate_transition(current, requested)


@pytest.mark.parametrize(
    "current,requested",
    [
        ("pending", "delivered"),
        ("pending", "in_transit"),
        ("ready_to_ship", "cancelled"),
        ("delivered", "cancelled"),
        ("cancelled", "pending"),
        ("rejected_shipping", "in_transit"),
        ("returned", "delivered"),
        ("delivered", "delivered"),
    ],
)
def test_illegal_transitions(current, requested):
    with pytest.raises(IllegalTransitionError):
        validate_transition(current, requested)


def test_status_parsing():
    assert parse_status("ReadyToShip") == OrderStatus.READY_TO_SHIP
    assert parse_status("in-transit") == OrderStatus.IN_TRANSIT
    assert parse_status(" Delivered ") == OrderStatus.DELIVERED
    with pytest.raises(InvalidInputError):
        parse_status("lost")


def test_is_behind():
    assert is_behind(OrderStatus.PENDING, OrderStatus.ACCEPTED)
    assert not is_behind(OrderStatus.IN_TRANSIT, OrderStatus.ACCEPTED)
    assert not is_behind(OrderStatus.CANCELLED, OrderStatus.ACCEPTED)
    assert not is_behind(OrderStatus.DELIVERED, OrderStatus.REJECTED_SHIPPING)
    assert is_behind(OrderStatus.IN_TRANSIT, OrderStatus.REJECTED_SHIPPING)


def test_illegal_transition_has_no_side_effects(place_order):
    order = place_order()
    before = _ledger_count()

    with pytest.raises(IllegalTransitionError):
        _move(order.order_id, "delivered")

    assert _ledger_count() == before
    assert _wallet("vendor-khan-silver").pending_balance == Decimal("912.00")
    assert _wallet("vendor-khan-silver").available_balance == Decimal("0.00")
    with db.session_scope() as s:
        stored = s.get(OrderModel, order.order_id)
        assert stored.status == "pending"
        assert {shipment.status for shipment in stored.shipments} == {"pending"}


def test_order_level_moves_cascade_to_shipments(place_order):
    order = place_order()
    result = _move(order.order_id, "accepted")

    assert result.previous_status == "pending"
    assert result.new_status == "accepted"
    assert result.order_status == "accepted"
    assert set(result.shipment_statuses.values()) == {"accepted"}
    assert result.ledger_entries == []


def test_shipments_ahead_of_the_order_are_left_alone(place_order):
    order = place_order()
    _move(order.order_id, "accepted")
    first = order.shipments[0].shipment_id
    _move(order.order_id, "ready_to_ship", shipment_id=first)

    result = _move(order.order_id, "ready_to_ship")
    assert set(result.shipment_statuses.values()) == {"ready_to_ship"}


def test_delivering_one_shipment_releases_only_its_vendors(place_order):
    order = place_order()
    _ship(order.order_id)
    khan_shipment, weavers_shipment = (row.shipment_id for row in order.shipments)

    result = _move(order.order_id, "delivered", shipment_id=khan_shipment)

    assert result.previous_status == "in_transit"
    assert result.order_status == "in_transit"
    assert len(result.ledger_entries) == 1
    release = result.ledger_entries[0]
    assert release.transaction_type == "release"
    assert release.balance_status == "available"
    assert release.vendor_id == "vendor-khan-silver"
    assert release.vendor_amount == Decimal("912.00")

    khan = _wallet("vendor-khan-silver")
    assert khan.pending_balance == Decimal("0.00")
    assert khan.available_balance == Decimal("912.00")
    siwa = _wallet("vendor-siwa-collective")
    assert siwa.pending_balance == Decimal("530.00")
    assert siwa.available_balance == Decimal("0.00")

    final = _move(order.order_id, "delivered", shipment_id=weavers_shipment)
    assert final.order_status == "delivered"
    with db.session_scope() as s:
        assert s.get(OrderModel, order.order_id).delivered_at is not None
    assert _wallet("vendor-siwa-collective").available_balance == Decimal("530.00")


def test_shipment_cannot_be_delivered_twice(place_order):
    order = place_order()
    _ship(order.order_id)
    shipment_id = order.shipments[0].shipment_id
    _move(order.order_id, "delivered", shipment_id=shipment_id)

    with pytest.raises(IllegalTransitionError):
        _move(order.order_id, "delivered", shipment_id=shipment_id)
    assert _wallet("vendor-khan-silver").available_balance == Decimal("912.00")


def test_order_level_delivery_skips_delivered_shipments(place_order):
    order = place_order()
    _ship(order.order_id)
    _move(order.order_id, "delivered", shipment_id=order.shipments[0].shipment_id)

    result = _move(order.order_id, "delivered")
    assert result.order_status == "delivered"
    assert [entry.vendor_id for entry in result.ledger_entries] == ["vendor-siwa-collective"]
    assert _wallet("vendor-khan-silver").available_balance == Decimal("912.00")


def test_order_is_not_delivered_while_a_shipment_was_rejected(place_order):
    order = place_order()
    _ship(order.order_id)
    rejected = order.shipments[0].shipment_id
    _move(order.order_id, "rejected_shipping", shipment_id=rejected)
    before = _ledger_count()

    with pytest.raises(IllegalTransitionError) as exc_info:
        _move(order.order_id, "delivered")
    assert exc_info.value.detail["current"] == "rejected_shipping"

    assert _ledger_count() == before
    assert _wallet("vendor-siwa-collective").available_balance == Decimal("0.00")
    with db.session_scope() as s:
        stored = s.get(OrderModel, order.order_id)
        assert stored.status == "in_transit"
        assert stored.delivered_at is None
        assert {shipment.id: shipment.status for shipment in stored.shipments}[rejected] == "rejected_shipping"

    # The remaining shipment can still be delivered on its own; the order stays open.
    result = _move(order.order_id, "delivered", shipment_id=order.shipments[1].shipment_id)
    assert result.order_status == "in_transit"


def test_order_level_delivery_releases_every_payee(place_order):
    order = place_order([("prod-woven-rug", 1), ("prod-silver-ring", 2)])
    _ship(order.order_id)

    result = _move(order.order_id, "delivered")
    assert sorted(entry.vendor_id for entry in result.ledger_entries) == [
        "vendor-khan-silver",
        "vendor-siwa-collective",
    ]
    assert _wallet("vendor-khan-silver").available_balance == Decimal("912.00")
    assert _wallet("vendor-siwa-collective").available_balance == Decimal("530.00")


def test_cancel_pending_order_round_trips_wallets_and_stock(place_order):
    order = place_order()

    result = _move(order.order_id, "cancelled")

    assert result.order_status == "cancelled"
    assert set(result.shipment_statuses.values()) == {"cancelled"}
    assert {entry.transaction_type for entry in result.ledger_entries} == {"refund"}
    assert all(entry.balance_status == "pending" for entry in result.ledger_entries)
    assert _stock("prod-silver-ring") == 20
    assert _stock("prod-woven-rug") == 5
    for vendor_id in ("vendor-khan-silver", "vendor-siwa-collective"):
        wallet = _wallet(vendor_id)
        assert wallet.pending_balance == Decimal("0.00")
        assert wallet.available_balance == Decimal("0.00")
        assert wallet.lifetime_earnings == Decimal("0.00")


def test_cancel_is_allowed_after_acceptance_only(place_order):
    accepted = place_order([("prod-silver-ring", 1)])
    _move(accepted.order_id, "accepted")
    assert _move(accepted.order_id, "cancelled").order_status == "cancelled"

    shipped = place_order([("prod-silver-ring", 1)])
    _move(shipped.order_id, "accepted")
    _move(shipped.order_id, "ready_to_ship")
    with pytest.raises(IllegalTransitionError):
        _move(shipped.order_id, "cancelled")


def test_cancel_requires_every_shipment_to_be_cancellable(place_order):
    order = place_order()
    _move(order.order_id, "accepted")
    _move(order.order_id, "ready_to_ship", shipment_id=order.shipments[0].shipment_id)
    before = _ledger_count()

    with pytest.raises(IllegalTransitionError):
        _move(order.order_id, "cancelled")
    assert _ledger_count() == before
    assert _stock("prod-silver-ring") == 18


def test_single_shipment_cannot_be_cancelled(place_order):
    order = place_order()
    with pytest.raises(IllegalTransitionError):
        _move(order.order_id, "cancelled", shipment_id=order.shipments[0].shipment_id)


def test_return_reverses_released_funds_and_restores_stock(place_order):
    order = place_order()
    _ship(order.order_id)
    _move(order.order_id, "delivered")
    khan_shipment = order.shipments[0].shipment_id

    result = _move(order.order_id, "returned", shipment_id=khan_shipment)

    assert result.order_status == "delivered"
    refund = result.ledger_entries[0]
    assert refund.transaction_type == "refund"
    assert refund.balance_status == "available"
    assert refund.vendor_amount == Decimal("-912.00")
    assert refund.gross_amount == Decimal("-1071.60")

    khan = _wallet("vendor-khan-silver")
    assert khan.available_balance == Decimal("0.00")
    assert khan.lifetime_earnings == Decimal("0.00")
    assert _stock("prod-silver-ring") == 20
    assert _stock("prod-woven-rug") == 4


def test_all_shipments_returned_returns_the_order(place_order):
    order = place_order()
    _ship(order.order_id)
    _move(order.order_id, "delivered")
    for shipment in order.shipments:
        result = _move(order.order_id, "returned", shipment_id=shipment.shipment_id)
    assert result.order_status == "returned"


def test_order_level_return_reverses_every_shipment(place_order):
    order = place_order()
    _ship(order.order_id)
    _move(order.order_id, "delivered")

    result = _move(order.order_id, "returned")
    assert result.order_status == "returned"
    assert len(result.ledger_entries) == 2
    assert _wallet("vendor-siwa-collective").available_balance == Decimal("0.00")
    assert _stock("prod-silver-ring") == 20
    assert _stock("prod-woven-rug") == 5


def test_rejected_shipping_has_no_financial_effect(place_order):
    order = place_order()
    _ship(order.order_id)
    before = _ledger_count()

    result = _move(order.order_id, "rejected_shipping")

    assert result.order_status == "rejected_shipping"
    assert set(result.shipment_statuses.values()) == {"rejected_shipping"}
    assert result.ledger_entries == []
    assert _ledger_count() == before
    assert _wallet("vendor-khan-silver").pending_balance == Decimal("912.00")
    assert _stock("prod-silver-ring") == 18


def test_unknown_order_and_shipment(place_order):
    order = place_order()
    with pytest.raises(NotFoundError):
        _move("missing-order", "accepted")
    with pytest.raises(NotFoundError):
        _move(order.order_id, "accepted", shipment_id="missing-shipment")
