"""Application tests for order transitions through the lifecycle service."""

import pytest
from ordering.errors import ErrorKind
from ordering.order.events import ORDER_CANCELLED_TOPIC, ORDER_UPDATED_TOPIC
from ordering.order.order import OrderStatus


def _advance(service, order_id, status):
    steps = [
        (OrderStatus.CONFIRMED, lambda: service.confirm_order(order_id, "TXN-1")),
        (OrderStatus.PROCESSING, lambda: service.start_processing(order_id)),
        (OrderStatus.SHIPPED, lambda: service.ship_order(order_id)),
        (OrderStatus.DELIVERED, lambda: service.deliver_order(order_id)),
    ]
    for reached, step in steps:
        if service.get_order(order_id).value.status == status:
            return
        assert step().is_ok
        if reached == status:
            return


# ---------------------------------------------------------------
# Confirmation
# ---------------------------------------------------------------
class TestConfirmOrder:
    def test_confirm_pending_order(self, service, sink, place_order, clock):
        order = place_order()
        clock.advance(minutes=5)

        result = service.confirm_order(order.id, "TXN-1")

        assert result.is_ok
        confirmed = result.value
        assert confirmed.status == OrderStatus.CONFIRMED
        assert confirmed.payment_transaction_id == "TXN-1"
        assert confirmed.confirmed_at == clock.now
        assert confirmed.updated_at == clock.now
        assert confirmed.version == 2

        updated = sink.events_for(ORDER_UPDATED_TOPIC)
        assert len(updated) == 1
        assert updated[0].key == str(order.id)
        assert updated[0].payload["status"] == "CONFIRMED"

    def test_confirm_twice_fails_and_publishes_nothing(self, service, sink, place_order):
        order = place_order()
        assert service.confirm_order(order.id, "TXN-1").is_ok
        published = len(sink.published)

        result = service.confirm_order(order.id, "TXN-2")

        assert result.error.code == "INVALID_STATE_TRANSITION"
        assert result.error.status_code == 409
        assert len(sink.published) == published
        assert service.get_order(order.id).value.payment_transaction_id == "TXN-1"

    def test_confirm_requires_transaction_id(self, service, place_order):
        order = place_order()

        result = service.confirm_order(order.id, "")

        assert result.error.code == "TRANSACTION_ID_REQUIRED"
        assert service.get_order(order.id).value.status == OrderStatus.PENDING

    def test_confirm_unknown_order(self, service):
        result = service.confirm_order(999, "TXN-1")

        assert result.error.kind == ErrorKind.NOT_FOUND
        assert result.error.status_code == 404


# ---------------------------------------------------------------
# Fulfilment
# ---------------------------------------------------------------
class TestFulfilment:
    def test_full_happy_path(self, service, sink, place_order, clock):
        order = place_order()

        assert service.confirm_order(order.id, "TXN-1").is_ok
        clock.advance(hours=1)
        assert service.start_processing(order.id).value.status == OrderStatus.PROCESSING
        clock.advance(hours=1)
        shipped = service.ship_order(order.id).value
        clock.advance(days=2)
        delivered = service.deliver_order(order.id).value

        assert shipped.shipped_at is not None
        assert delivered.status == OrderStatus.DELIVERED
        assert delivered.delivered_at == clock.now
        assert delivered.version == 5
        assert [event.payload["status"] for event in sink.events_for(ORDER_UPDATED_TOPIC)] == [
            "CONFIRMED",
            "PROCESSING",
            "SHIPPED",
            "DELIVERED",
        ]

    def test_cannot_ship_unconfirmed_order(self, service, sink, place_order):
        order = place_order()
        sink.reset()

        result = service.ship_order(order.id)

        assert result.error.kind == ErrorKind.INVALID_TRANSITION
        assert sink.published == []
        assert service.get_order(order.id).value.status == OrderStatus.PENDING


# ---------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------
class TestCancelOrder:
    @pytest.mark.parametrize(
        "status",
        [OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED],
        ids=lambda s: s.value,
    )
    def test_cancel_from_non_terminal_state(self, service, sink, place_order, clock, status):
        order = place_order()
        _advance(service, order.id, status)
        clock.advance(minutes=1)

        result = service.cancel_order(order.id, "Customer changed their mind")

        assert result.is_ok
        cancelled = result.value
        assert cancelled.status == OrderStatus.CANCELLED
        assert cancelled.cancelled_at == clock.now
        assert cancelled.cancellation_reason == "Customer changed their mind"

        events = sink.events_for(ORDER_CANCELLED_TOPIC)
        assert len(events) == 1
        assert events[0].payload == {
            "orderId": order.id,
            "orderNumber": order.order_number,
            "reason": "Customer changed their mind",
            "cancelledAt": clock.now.isoformat(),
        }

    @pytest.mark.parametrize("status", [OrderStatus.DELIVERED, OrderStatus.CANCELLED], ids=lambda s: s.value)
    def test_terminal_orders_are_not_cancellable(self, service, sink, place_order, status):
        order = place_order()
        if status == OrderStatus.CANCELLED:
            assert service.cancel_order(order.id, "First").is_ok
        else:
            _advance(service, order.id, status)
        published = len(sink.published)

        result = service.cancel_order(order.id, "Again")

        assert result.error.code == "ORDER_NOT_CANCELLABLE"
        assert result.error.kind == ErrorKind.BUSINESS_RULE
        assert result.error.status_code == 409
        assert len(sink.published) == published
        assert service.get_order(order.id).value.status == status

    def test_reason_is_required(self, service, sink, place_order):
        order = place_order()

        result = service.cancel_order(order.id, "  ")

        assert result.error.code == "CANCELLATION_REASON_REQUIRED"
        assert sink.events_for(ORDER_CANCELLED_TOPIC) == []


# ---------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------
class TestLookups:
    def test_get_by_id_and_number(self, service, place_order):
        order = place_order()

        assert service.get_order(order.id).value.order_number == order.order_number
        assert service.get_order_by_number(order.order_number).value.id == order.id

    def test_unknown_number(self, service):
        result = service.get_order_by_number("ORD-0-MISSING0")

        assert result.error.code == "ORDER_NOT_FOUND"
        assert result.error.details == {"orderNumber": "ORD-0-MISSING0"}

    def test_reads_are_isolated_copies(self, service, place_order):
        order = place_order()

        first = service.get_order(order.id).value
        first.status = OrderStatus.DELIVERED

        assert service.get_order(order.id).value.status == OrderStatus.PENDING
