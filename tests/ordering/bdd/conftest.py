"""Shared BDD fixtures and step definitions for the Ordering domain."""

import pytest
from ordering.order.order import OrderStatus
from pytest_bdd import given, parsers, then


@pytest.fixture()
def outcome():
    """Container for the last service result (used by When/Then steps)."""
    return {"result": None, "order_id": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("a pending order")
def _(place_order, outcome, sink):
    outcome["order_id"] = place_order().id
    sink.reset()


@given("the order was confirmed")
def _(service, outcome):
    assert service.confirm_order(outcome["order_id"], "TXN-1").is_ok


@given(parsers.cfparse('the order was advanced to "{status}"'))
def _(service, outcome, status):
    order_id = outcome["order_id"]
    steps = {
        "CONFIRMED": lambda: service.confirm_order(order_id, "TXN-1"),
        "PROCESSING": lambda: service.start_processing(order_id),
        "SHIPPED": lambda: service.ship_order(order_id),
        "DELIVERED": lambda: service.deliver_order(order_id),
    }
    for reached, step in steps.items():
        if service.get_order(order_id).value.status == OrderStatus(status):
            break
        assert step().is_ok, reached
    assert service.get_order(order_id).value.status == OrderStatus(status)


# ---------------------------------------------------------------------------
# Then steps (shared, plain assertions)
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(service, outcome, status):
    assert service.get_order(outcome["order_id"]).value.status == OrderStatus(status)


@then(parsers.cfparse('the request is rejected with "{code}"'))
def _(outcome, code):
    result = outcome["result"]
    assert not result.is_ok
    assert result.error.code == code


@then(parsers.cfparse('an "{topic}" event is published for the order'))
def _(sink, outcome, topic):
    events = sink.events_for(topic)
    assert events, f"No {topic} event. Published: {[event.topic for event in sink.published]}"
    assert events[-1].key == str(outcome["order_id"])


@then("no event is published")
def _(sink):
    assert sink.published == []
