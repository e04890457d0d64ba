"""In-memory order store for development and testing.

Orders are kept as private copies and every read returns a fresh copy, so
concurrent requests never share a mutable aggregate. All access goes through
one lock acquired with a bounded timeout; a timeout surfaces as
``StoreUnavailable``.
"""

import copy
import itertools
import threading
from contextlib import contextmanager
from datetime import datetime

from ordering.errors import ConcurrentModification, StoreUnavailable, UniqueConstraintViolation
from ordering.order.customer_stats import CustomerOrderSummary
from ordering.order.order import Order, OrderStatus
from ordering.order.pricing import ZERO
from ordering.store.port import OrderStore, Page, PageRequest, SortDirection


def _sort_value(order: Order, field_name: str):
    value = getattr(order, field_name)
    if isinstance(value, OrderStatus):
        return value.value
    return value


def _paginate(orders: list[Order], page_request: PageRequest) -> Page[Order]:
    reverse = page_request.direction == SortDirection.DESC
    ordered = sorted(
        orders,
        key=lambda order: (_sort_value(order, page_request.sort_field), order.id),
        reverse=reverse,
    )
    start = page_request.offset
    window = ordered[start : start + page_request.size]
    return Page(
        items=[copy.deepcopy(order) for order in window],
        page=page_request.page,
        size=page_request.size,
        total_elements=len(ordered),
    )


class InMemoryOrderStore(OrderStore):
    def __init__(self, timeout_seconds: float = 5.0):
        self._orders: dict[int, Order] = {}
        self._ids_by_number: dict[str, int] = {}
        self._sequence = itertools.count(1)
        self._lock = threading.Lock()
        self._timeout = timeout_seconds

    @contextmanager
    def _locked(self):
        if not self._lock.acquire(timeout=self._timeout):
            raise StoreUnavailable(f"Timed out after {self._timeout}s waiting for the order store")
        try:
            yield
        finally:
            self._lock.release()

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------
    def save(self, order: Order) -> Order:
        with self._locked():
            if order.id is None:
                return self._insert(order)
            return self._update(order)

    def _insert(self, order: Order) -> Order:
        if order.order_number in self._ids_by_number:
            raise UniqueConstraintViolation(order.order_number)

        stored = copy.deepcopy(order)
        stored.id = next(self._sequence)
        stored.version = 1
        self._orders[stored.id] = stored
        self._ids_by_number[stored.order_number] = stored.id
        return copy.deepcopy(stored)

    def _update(self, order: Order) -> Order:
        current = self._orders.get(order.id)
        if current is None or current.version != order.version:
            raise ConcurrentModification(
                order.id,
                expected_version=order.version,
                actual_version=current.version if current else None,
            )

        stored = copy.deepcopy(order)
        stored.version = current.version + 1
        self._orders[stored.id] = stored
        return copy.deepcopy(stored)

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def find_by_id(self, order_id) -> Order | None:
        with self._locked():
            try:
                order = self._orders.get(int(order_id))
            except (TypeError, ValueError):
                return None
            return copy.deepcopy(order) if order else None

    def find_by_order_number(self, order_number: str) -> Order | None:
        with self._locked():
            order_id = self._ids_by_number.get(order_number)
            if order_id is None:
                return None
            return copy.deepcopy(self._orders[order_id])

    def exists_by_order_number(self, order_number: str) -> bool:
        with self._locked():
            return order_number in self._ids_by_number

    def find_by_customer_id(self, customer_id: str, page_request: PageRequest) -> Page[Order]:
        with self._locked():
            matching = [order for order in self._orders.values() if order.customer_id == str(customer_id)]
            return _paginate(matching, page_request)

    def find_by_status(self, status: OrderStatus, page_request: PageRequest) -> Page[Order]:
        with self._locked():
            matching = [order for order in self._orders.values() if order.status == status]
            return _paginate(matching, page_request)

    def find_pending_older_than(self, cutoff: datetime) -> list[Order]:
        with self._locked():
            stale = [
                order
                for order in self._orders.values()
                if order.status == OrderStatus.PENDING and order.created_at < cutoff
            ]
            stale.sort(key=lambda order: (order.created_at, order.id))
            return [copy.deepcopy(order) for order in stale]

    def count_by_customer_id_and_status(self, customer_id: str, status: OrderStatus | None = None) -> int:
        with self._locked():
            return sum(
                1
                for order in self._orders.values()
                if order.customer_id == str(customer_id) and (status is None or order.status == status)
            )

    def customer_order_summaries(self) -> list[CustomerOrderSummary]:
        with self._locked():
            amounts_by_customer: dict[str, list] = {}
            for order in self._orders.values():
                amounts_by_customer.setdefault(order.customer_id, []).append(order.total_amount)
            return [
                CustomerOrderSummary(
                    customer_id=customer_id,
                    order_count=len(amounts),
                    total_value=sum(amounts, ZERO),
                    highest_order_value=max(amounts),
                )
                for customer_id, amounts in amounts_by_customer.items()
            ]

    def reset(self) -> None:
        """Drop all stored orders (useful between tests)."""
        with self._locked():
            self._orders.clear()
            self._ids_by_number.clear()
            self._sequence = itertools.count(1)
