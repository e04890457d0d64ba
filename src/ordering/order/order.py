"""Order aggregate, the core of the ordering domain.

The Order owns its line items and addresses and is the only place where
status changes happen. Every transition validates first and then applies
status, timestamp and payload fields together, so a rejected transition
leaves the aggregate exactly as it was. Transitions return ``Ok``/``Err``
values instead of raising.

State Machine (6 states):
    PENDING → CONFIRMED → PROCESSING → SHIPPED → DELIVERED
    CANCELLED (from PENDING, CONFIRMED, PROCESSING, SHIPPED)
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from ordering.errors import Err, Ok, OrderError, Result
from ordering.order.pricing import ZERO, OrderTotals, compute_item_total, compute_total_amount, to_money


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

TERMINAL_STATES = frozenset(status for status, targets in _VALID_TRANSITIONS.items() if not targets)

# Fixed once the order is built; they only change through a new Order
_MONEY_FIELDS = frozenset({"subtotal", "tax_amount", "shipping_cost", "discount_amount", "total_amount"})


def allowed_transitions(status: OrderStatus) -> frozenset:
    return frozenset(_VALID_TRANSITIONS[status])


def _now() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Address:
    """A delivery or billing address captured at order time.

    Once recorded on an Order, the address never changes, regardless of later
    changes to the customer's address book.
    """

    street: str
    city: str
    state: str
    zip_code: str
    country: str

    def missing_fields(self) -> list[str]:
        return [
            name
            for name in ("street", "city", "state", "zip_code", "country")
            if not (getattr(self, name) or "").strip()
        ]

    @classmethod
    def from_dict(cls, data: dict) -> "Address":
        return cls(
            street=data.get("street", ""),
            city=data.get("city", ""),
            state=data.get("state", ""),
            zip_code=data.get("zip_code", data.get("zipCode", "")),
            country=data.get("country", ""),
        )

    def to_dict(self) -> dict:
        return {
            "street": self.street,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
            "country": self.country,
        }


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class OrderItem:
    """A line item in an order.

    Product name and unit price are snapshots taken when the order is placed.
    ``total_price`` is always derived from the other amounts and cannot be
    passed in. Construction raises ``InvalidQuantity`` or ``InvalidPrice``
    for out-of-range values.
    """

    product_id: str
    product_name: str
    sku: str | None
    quantity: int
    unit_price: Decimal
    discount: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total_price: Decimal = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "unit_price", to_money(self.unit_price))
        object.__setattr__(self, "discount", to_money(self.discount or ZERO))
        object.__setattr__(self, "tax_amount", to_money(self.tax_amount or ZERO))
        object.__setattr__(self, "total_price", compute_item_total(self))

    @classmethod
    def from_dict(cls, data: dict) -> "OrderItem":
        return cls(
            product_id=data["product_id"],
            product_name=data["product_name"],
            sku=data.get("sku"),
            quantity=data["quantity"],
            unit_price=data["unit_price"],
            discount=data.get("discount") or ZERO,
            tax_amount=data.get("tax_amount") or ZERO,
        )


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@dataclass(eq=False)
class Order:
    customer_id: str
    items: tuple[OrderItem, ...]
    shipping_address: Address
    billing_address: Address
    payment_method: str | None = None
    notes: str | None = None
    order_number: str | None = None
    id: int | None = None
    status: OrderStatus = OrderStatus.PENDING
    subtotal: Decimal = ZERO
    tax_amount: Decimal = ZERO
    shipping_cost: Decimal = ZERO
    discount_amount: Decimal = ZERO
    total_amount: Decimal = ZERO
    payment_transaction_id: str | None = None
    confirmed_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 0

    def __post_init__(self):
        # Items are owned by this order alone
        self.items = tuple(self.items)
        if not self.items:
            raise ValueError("An order must contain at least one item")

        self.status = OrderStatus(self.status)
        for name in _MONEY_FIELDS:
            setattr(self, name, to_money(getattr(self, name)))

        items_subtotal = to_money(sum((item.total_price for item in self.items), ZERO))
        if self.subtotal != items_subtotal:
            raise ValueError(f"Order subtotal {self.subtotal} does not match its items ({items_subtotal})")
        expected_total = compute_total_amount(self.subtotal, self.tax_amount, self.shipping_cost, self.discount_amount)
        if self.total_amount != expected_total:
            raise ValueError(f"Order total {self.total_amount} does not match its components ({expected_total})")
        object.__setattr__(self, "_totals_sealed", True)

    def __setattr__(self, name, value):
        if name in _MONEY_FIELDS and self.__dict__.get("_totals_sealed"):
            raise AttributeError(f"{name} is fixed when the order is created")
        super().__setattr__(name, value)

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        customer_id,
        items,
        shipping_address: Address,
        totals: OrderTotals,
        billing_address: Address | None = None,
        payment_method: str | None = None,
        notes: str | None = None,
        order_number: str | None = None,
        at: datetime | None = None,
    ) -> "Order":
        """Create a new PENDING order.

        Billing defaults to the shipping address. ``totals`` must come from
        ``compute_order_totals`` over the same items.
        """
        now = at or _now()
        return cls(
            customer_id=str(customer_id),
            items=tuple(items),
            shipping_address=shipping_address,
            billing_address=billing_address or shipping_address,
            payment_method=payment_method,
            notes=notes,
            order_number=order_number,
            status=OrderStatus.PENDING,
            subtotal=totals.subtotal,
            tax_amount=totals.tax_amount,
            shipping_cost=totals.shipping_cost,
            discount_amount=totals.discount_amount,
            total_amount=totals.total_amount,
            created_at=now,
            updated_at=now,
        )

    def assign_order_number(self, order_number: str) -> None:
        """Set the order number of an order that has not been persisted yet."""
        if self.id is not None:
            raise ValueError(f"Order {self.id} already has order number {self.order_number}")
        self.order_number = order_number

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def is_cancellable(self) -> bool:
        return self.status not in (OrderStatus.DELIVERED, OrderStatus.CANCELLED)

    def can_transition_to(self, target: OrderStatus) -> bool:
        return target in _VALID_TRANSITIONS[self.status]

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def _check_transition(self, target: OrderStatus) -> OrderError | None:
        if not self.can_transition_to(target):
            return OrderError.invalid_transition(self.status, target)
        return None

    def _apply(self, target: OrderStatus, at: datetime, **changes) -> Result:
        """Apply a validated transition. Nothing here can fail."""
        for name, value in changes.items():
            setattr(self, name, value)
        self.status = target
        self.updated_at = at
        return Ok(self)

    # -------------------------------------------------------------------
    # Order lifecycle transitions
    # -------------------------------------------------------------------
    def confirm(self, payment_transaction_id: str, at: datetime | None = None) -> Result:
        """Confirm the order once payment has been taken."""
        error = self._check_transition(OrderStatus.CONFIRMED)
        if error:
            return Err(error)
        if not payment_transaction_id or not str(payment_transaction_id).strip():
            return Err(OrderError.validation("TRANSACTION_ID_REQUIRED", "A payment transaction id is required"))

        now = at or _now()
        return self._apply(
            OrderStatus.CONFIRMED,
            now,
            payment_transaction_id=str(payment_transaction_id).strip(),
            confirmed_at=now,
        )

    def start_processing(self, at: datetime | None = None) -> Result:
        """Mark the order as being processed (fulfillment started)."""
        error = self._check_transition(OrderStatus.PROCESSING)
        if error:
            return Err(error)
        return self._apply(OrderStatus.PROCESSING, at or _now())

    def ship(self, at: datetime | None = None) -> Result:
        error = self._check_transition(OrderStatus.SHIPPED)
        if error:
            return Err(error)
        now = at or _now()
        return self._apply(OrderStatus.SHIPPED, now, shipped_at=now)

    def deliver(self, at: datetime | None = None) -> Result:
        error = self._check_transition(OrderStatus.DELIVERED)
        if error:
            return Err(error)
        now = at or _now()
        return self._apply(OrderStatus.DELIVERED, now, delivered_at=now)

    def cancel(self, reason: str, at: datetime | None = None) -> Result:
        """Cancel the order. A non-empty reason is mandatory."""
        error = self._check_transition(OrderStatus.CANCELLED)
        if error:
            return Err(error)
        if not reason or not reason.strip():
            return Err(OrderError.validation("CANCELLATION_REASON_REQUIRED", "A cancellation reason is required"))

        now = at or _now()
        return self._apply(
            OrderStatus.CANCELLED,
            now,
            cancellation_reason=reason.strip(),
            cancelled_at=now,
        )
