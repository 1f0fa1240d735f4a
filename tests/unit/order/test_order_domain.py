from __future__ import annotations

from datetime import datetime, timezone

import pytest

from ods.domain.common.ids import MenuItemId, RestaurantId, UserId
from ods.domain.order.entities import (
    Order,
    OrderStatus,
    OrderTransitionError,
    ensure_transition,
    format_delivery_location,
    parse_status,
)


def _draft(**overrides) -> Order:
    values = {
        "restaurant_id": RestaurantId(7),
        "item_id": MenuItemId(42),
        "instructions": "no onions",
        "pickup_location": "R1",
    }
    values.update(overrides)
    return Order(**values)


def test_missing_field_reports_first_required_field_in_order() -> None:
    assert _draft().missing_field() is None
    assert _draft(restaurant_id=None).missing_field() == "restaurant_id"
    assert _draft(item_id=None, instructions="").missing_field() == "item_id"
    assert _draft(instructions="").missing_field() == "instructions"
    assert _draft(pickup_location="").missing_field() == "pickup_location"


def test_place_forces_pending_and_stamps_submitter() -> None:
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    placed = _draft(status="delivered").place(
        user_id=UserId(3),
        delivery_location="12.500000, 77.250000",
        now=now,
    )

    assert placed.status == OrderStatus.PENDING.value
    assert placed.user_id == 3
    assert placed.delivery_location == "12.500000, 77.250000"
    assert placed.created_at == now


def test_format_delivery_location_uses_six_decimals() -> None:
    assert format_delivery_location(12.5, 77.25) == "12.500000, 77.250000"
    assert format_delivery_location(-1.0, 0.0) == "-1.000000, 0.000000"


def test_parse_status_returns_none_for_unknown_value() -> None:
    assert parse_status("accepted") is OrderStatus.ACCEPTED
    assert parse_status("preparing") is None


@pytest.mark.parametrize(
    ("current", "target"),
    [
        ("pending", "accepted"),
        ("pending", "cancelled"),
        ("accepted", "assigned"),
        ("accepted", "delivered"),
        ("assigned", "delivered"),
        ("accepted", "accepted"),
        ("preparing", "delivered"),
    ],
)
def test_ensure_transition_allows_table_moves(current: str, target: str) -> None:
    ensure_transition(current, target)


@pytest.mark.parametrize(
    ("current", "target"),
    [
        ("pending", "delivered"),
        ("delivered", "pending"),
        ("cancelled", "accepted"),
        ("assigned", "accepted"),
        ("pending", "preparing"),
    ],
)
def test_ensure_transition_rejects_illegal_moves(current: str, target: str) -> None:
    with pytest.raises(OrderTransitionError):
        ensure_transition(current, target)
