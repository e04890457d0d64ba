"""Order store port (abstract interface).

The store is a passive persistence boundary: it holds no business rules
beyond uniqueness of order numbers and optimistic version checks. Adapters
raise ``ConcurrentModification``, ``UniqueConstraintViolation`` and
``StoreUnavailable`` from ``ordering.errors``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Generic, TypeVar

from ordering.order.customer_stats import CustomerOrderSummary
from ordering.order.order import Order, OrderStatus

T = TypeVar("T")


class SortDirection(Enum):
    ASC = "ASC"
    DESC = "DESC"


# Public sort names (snake_case and camelCase) mapped to Order attributes
SORTABLE_FIELDS = {
    "id": "id",
    "order_number": "order_number",
    "orderNumber": "order_number",
    "status": "status",
    "created_at": "created_at",
    "createdAt": "created_at",
    "updated_at": "updated_at",
    "updatedAt": "updated_at",
    "subtotal": "subtotal",
    "total_amount": "total_amount",
    "totalAmount": "total_amount",
}


@dataclass(frozen=True)
class PageRequest:
    page: int = 0
    size: int = 10
    sort_field: str = "created_at"
    direction: SortDirection = SortDirection.DESC

    @property
    def offset(self) -> int:
        return self.page * self.size


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    page: int
    size: int
    total_elements: int

    @property
    def total_pages(self) -> int:
        if self.size <= 0:
            return 0
        return (self.total_elements + self.size - 1) // self.size


class OrderStore(ABC):
    """Abstract order persistence interface."""

    @abstractmethod
    def save(self, order: Order) -> Order:
        """Insert a new order (``id is None``) or update an existing one.

        Returns the stored order with its id and new version. Updates only
        succeed when ``order.version`` matches the stored version.
        """
        ...

    @abstractmethod
    def find_by_id(self, order_id) -> Order | None: ...

    @abstractmethod
    def find_by_order_number(self, order_number: str) -> Order | None: ...

    @abstractmethod
    def find_by_customer_id(self, customer_id: str, page_request: PageRequest) -> Page[Order]: ...

    @abstractmethod
    def exists_by_order_number(self, order_number: str) -> bool: ...

    @abstractmethod
    def find_by_status(self, status: OrderStatus, page_request: PageRequest) -> Page[Order]: ...

    @abstractmethod
    def find_pending_older_than(self, cutoff: datetime) -> list[Order]:
        """PENDING orders created strictly before ``cutoff``, oldest first."""
        ...

    @abstractmethod
    def count_by_customer_id_and_status(self, customer_id: str, status: OrderStatus | None = None) -> int: ...

    @abstractmethod
    def customer_order_summaries(self) -> list[CustomerOrderSummary]:
        """Order count, total value and largest order per customer, across all statuses."""
        ...
