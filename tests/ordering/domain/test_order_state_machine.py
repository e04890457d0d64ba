"""Tests for Order state machine: valid transitions and invalid transition guards."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from ordering.errors import ErrorKind
from ordering.order.order import (
    TERMINAL_STATES,
    Address,
    Order,
    OrderItem,
    OrderStatus,
    allowed_transitions,
)
from ordering.order.pricing import compute_order_totals

T0 = datetime(2026, 1, 1, tzinfo=UTC)
LATER = T0 + timedelta(hours=1)

_PATH = [
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
]

_TIMESTAMP_FIELDS = ("confirmed_at", "shipped_at", "delivered_at", "cancelled_at", "updated_at")


def _make_order():
    items = [
        OrderItem(
            product_id="prod-001",
            product_name="Widget",
            sku="WID-001",
            quantity=1,
            unit_price=Decimal("50.00"),
        )
    ]
    return Order.create(
        customer_id="cust-001",
        items=items,
        shipping_address=Address("1 St", "C", "S", "00000", "US"),
        totals=compute_order_totals(items),
        at=T0,
    )


def _move(order, target, at=T0):
    if target == OrderStatus.CONFIRMED:
        return order.confirm("TXN-1", at=at)
    if target == OrderStatus.PROCESSING:
        return order.start_processing(at=at)
    if target == OrderStatus.SHIPPED:
        return order.ship(at=at)
    if target == OrderStatus.DELIVERED:
        return order.deliver(at=at)
    if target == OrderStatus.CANCELLED:
        return order.cancel("Changed my mind", at=at)
    raise ValueError(f"No transition into {target}")


def _order_at_state(target_status):
    """Create an order and advance it to the desired state."""
    order = _make_order()
    if target_status == OrderStatus.CANCELLED:
        assert _move(order, OrderStatus.CANCELLED).is_ok
        return order

    for status in _PATH[1:]:
        if order.status == target_status:
            break
        assert _move(order, status).is_ok
    assert order.status == target_status
    return order


def _snapshot(order):
    return {name: getattr(order, name) for name in ("status", "payment_transaction_id", "cancellation_reason")} | {
        name: getattr(order, name) for name in _TIMESTAMP_FIELDS
    }


# ---------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------
def test_transition_table():
    assert allowed_transitions(OrderStatus.PENDING) == {OrderStatus.CONFIRMED, OrderStatus.CANCELLED}
    assert allowed_transitions(OrderStatus.CONFIRMED) == {OrderStatus.PROCESSING, OrderStatus.CANCELLED}
    assert allowed_transitions(OrderStatus.PROCESSING) == {OrderStatus.SHIPPED, OrderStatus.CANCELLED}
    assert allowed_transitions(OrderStatus.SHIPPED) == {OrderStatus.DELIVERED, OrderStatus.CANCELLED}
    assert TERMINAL_STATES == {OrderStatus.DELIVERED, OrderStatus.CANCELLED}


# ---------------------------------------------------------------
# Happy path transitions
# ---------------------------------------------------------------
class TestValidTransitions:
    def test_pending_to_confirmed(self):
        order = _order_at_state(OrderStatus.PENDING)

        result = order.confirm("TXN-1", at=LATER)

        assert result.is_ok
        assert result.value is order
        assert order.status == OrderStatus.CONFIRMED
        assert order.payment_transaction_id == "TXN-1"
        assert order.confirmed_at == LATER
        assert order.updated_at == LATER

    def test_confirmed_to_processing(self):
        order = _order_at_state(OrderStatus.CONFIRMED)

        assert order.start_processing(at=LATER).is_ok
        assert order.status == OrderStatus.PROCESSING
        assert order.updated_at == LATER

    def test_processing_to_shipped(self):
        order = _order_at_state(OrderStatus.PROCESSING)

        assert order.ship(at=LATER).is_ok
        assert order.status == OrderStatus.SHIPPED
        assert order.shipped_at == LATER

    def test_shipped_to_delivered(self):
        order = _order_at_state(OrderStatus.SHIPPED)

        assert order.deliver(at=LATER).is_ok
        assert order.status == OrderStatus.DELIVERED
        assert order.delivered_at == LATER
        assert order.is_terminal

    def test_created_at_never_changes(self):
        order = _order_at_state(OrderStatus.DELIVERED)

        assert order.created_at == T0


# ---------------------------------------------------------------
# Invalid transitions
# ---------------------------------------------------------------
_INVALID_PAIRS = [
    (current, target)
    for current in OrderStatus
    for target in OrderStatus
    if target != OrderStatus.PENDING and target not in allowed_transitions(current)
]


class TestInvalidTransitions:
    @pytest.mark.parametrize(("current", "target"), _INVALID_PAIRS, ids=lambda s: s.value)
    def test_rejected_and_aggregate_unchanged(self, current, target):
        order = _order_at_state(current)
        before = _snapshot(order)

        result = _move(order, target, at=LATER)

        assert not result.is_ok
        assert result.error.kind == ErrorKind.INVALID_TRANSITION
        assert result.error.code == "INVALID_STATE_TRANSITION"
        assert result.error.status_code == 409
        assert _snapshot(order) == before

    def test_cannot_skip_confirmation(self):
        order = _order_at_state(OrderStatus.PENDING)

        result = order.ship(at=LATER)

        assert result.error.details == {"from": "PENDING", "to": "SHIPPED"}
        assert order.shipped_at is None

    def test_confirm_requires_transaction_id(self):
        order = _order_at_state(OrderStatus.PENDING)

        result = order.confirm("   ", at=LATER)

        assert result.error.code == "TRANSACTION_ID_REQUIRED"
        assert order.status == OrderStatus.PENDING
        assert order.confirmed_at is None


# ---------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------
class TestCancellation:
    @pytest.mark.parametrize(
        "status",
        [OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED],
        ids=lambda s: s.value,
    )
    def test_cancellable_states(self, status):
        order = _order_at_state(status)
        assert order.is_cancellable()

        result = order.cancel("  Customer request  ", at=LATER)

        assert result.is_ok
        assert order.status == OrderStatus.CANCELLED
        assert order.cancellation_reason == "Customer request"
        assert order.cancelled_at == LATER

    @pytest.mark.parametrize("status", [OrderStatus.DELIVERED, OrderStatus.CANCELLED], ids=lambda s: s.value)
    def test_terminal_states_are_not_cancellable(self, status):
        order = _order_at_state(status)
        before = _snapshot(order)

        assert not order.is_cancellable()
        assert not order.cancel("Too late", at=LATER).is_ok
        assert _snapshot(order) == before

    @pytest.mark.parametrize("reason", ["", "   ", None])
    def test_reason_is_mandatory(self, reason):
        order = _order_at_state(OrderStatus.CONFIRMED)
        before = _snapshot(order)

        result = order.cancel(reason, at=LATER)

        assert result.error.code == "CANCELLATION_REASON_REQUIRED"
        assert _snapshot(order) == before
