from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from ordering.order.numbering import generate_order_number
from ordering.order.order import Address, Order, OrderItem
from ordering.order.pricing import compute_order_totals
from ordering.order.service import OrderLifecycleService
from ordering.publishing.fake_sink import FakeEventSink
from ordering.publishing.publisher import OrderEventPublisher
from ordering.store.memory import InMemoryOrderStore

FIXED_NOW = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)


class FixedClock:
    """A clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture()
def clock():
    return FixedClock(FIXED_NOW)


@pytest.fixture()
def store():
    return InMemoryOrderStore(timeout_seconds=1.0)


@pytest.fixture()
def sink():
    return FakeEventSink()


@pytest.fixture()
def publisher(sink):
    return OrderEventPublisher(sink)


@pytest.fixture()
def service(store, publisher, clock):
    return OrderLifecycleService(store, publisher, clock=clock)


@pytest.fixture()
def shipping_address():
    return {
        "street": "123 Main St",
        "city": "Springfield",
        "state": "IL",
        "zip_code": "62701",
        "country": "US",
    }


@pytest.fixture()
def widget_items():
    """Two widgets at 25.00: subtotal 50.00, exactly the free-shipping threshold."""
    return [
        {
            "product_id": "prod-001",
            "product_name": "Widget",
            "sku": "WID-001",
            "quantity": 2,
            "unit_price": Decimal("25.00"),
        }
    ]


@pytest.fixture()
def place_order(service, widget_items, shipping_address):
    """Create an order through the service and return the stored aggregate."""
    default_address = shipping_address

    def _place(customer_id="cust-001", items=None, shipping_address=None, payment_method="CARD", **kwargs):
        result = service.create_order(
            customer_id,
            items if items is not None else widget_items,
            shipping_address or default_address,
            payment_method=payment_method,
            **kwargs,
        )
        assert result.is_ok, result
        return result.value

    return _place


@pytest.fixture()
def new_order():
    """Build an unsaved PENDING order without going through the service."""

    def _build(quantity=2, unit_price="25.00", at=FIXED_NOW):
        items = [
            OrderItem(
                product_id="prod-001",
                product_name="Widget",
                sku="WID-001",
                quantity=quantity,
                unit_price=Decimal(unit_price),
            )
        ]
        return Order.create(
            customer_id="cust-001",
            items=items,
            shipping_address=Address("123 Main St", "Springfield", "IL", "62701", "US"),
            totals=compute_order_totals(items),
            payment_method="CARD",
            order_number=generate_order_number(),
            at=at,
        )

    return _build
