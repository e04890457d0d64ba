"""Lifecycle events published for the Order aggregate.

Events are immutable facts published after the order has been persisted.
Each one is keyed by the order's store id so that a partitioned log keeps
per-order ordering. Consumers must be idempotent: the same event can arrive
more than once, and the stable dedupe key is
``(order id, topic, timestamp)``.

Payloads use camelCase keys, decimal amounts as strings and ISO-8601
timestamps.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import ClassVar

ORDER_CREATED_TOPIC = "order.created"
ORDER_UPDATED_TOPIC = "order.updated"
ORDER_CANCELLED_TOPIC = "order.cancelled"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class OrderEvent(ABC):
    topic: ClassVar[str]

    order_id: int

    @property
    def key(self) -> str:
        return str(self.order_id)

    @abstractmethod
    def to_payload(self) -> dict: ...


@dataclass(frozen=True)
class OrderCreated(OrderEvent):
    """A new order was placed and persisted in PENDING status."""

    __version__ = "v1"
    topic: ClassVar[str] = ORDER_CREATED_TOPIC

    order_number: str
    customer_id: str
    total_amount: Decimal
    status: str
    timestamp: datetime

    @classmethod
    def from_order(cls, order) -> "OrderCreated":
        return cls(
            order_id=order.id,
            order_number=order.order_number,
            customer_id=order.customer_id,
            total_amount=order.total_amount,
            status=order.status.value,
            timestamp=order.created_at,
        )

    def to_payload(self) -> dict:
        return {
            "orderId": self.order_id,
            "orderNumber": self.order_number,
            "customerId": self.customer_id,
            "totalAmount": str(self.total_amount),
            "status": self.status,
            "timestamp": _iso(self.timestamp),
        }


@dataclass(frozen=True)
class OrderUpdated(OrderCreated):
    """The order moved to a new non-cancelled status."""

    __version__ = "v1"
    topic: ClassVar[str] = ORDER_UPDATED_TOPIC

    @classmethod
    def from_order(cls, order) -> "OrderUpdated":
        return cls(
            order_id=order.id,
            order_number=order.order_number,
            customer_id=order.customer_id,
            total_amount=order.total_amount,
            status=order.status.value,
            timestamp=order.updated_at,
        )


@dataclass(frozen=True)
class OrderCancelled(OrderEvent):
    """The order was cancelled. Downstream services release reservations."""

    __version__ = "v1"
    topic: ClassVar[str] = ORDER_CANCELLED_TOPIC

    order_number: str
    reason: str
    cancelled_at: datetime

    @classmethod
    def from_order(cls, order) -> "OrderCancelled":
        return cls(
            order_id=order.id,
            order_number=order.order_number,
            reason=order.cancellation_reason,
            cancelled_at=order.cancelled_at,
        )

    def to_payload(self) -> dict:
        return {
            "orderId": self.order_id,
            "orderNumber": self.order_number,
            "reason": self.reason,
            "cancelledAt": _iso(self.cancelled_at),
        }
