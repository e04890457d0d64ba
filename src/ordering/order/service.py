"""Order Lifecycle Service.

Application service for the Order aggregate. Every operation follows the same
sequence: validate the request, load or build the aggregate, apply the change
on the aggregate, persist it through the store, and only then publish the
lifecycle event. Publication is best-effort and never affects the outcome.

All public operations return ``Ok(value)`` or ``Err(OrderError)``. Store
exceptions are converted at this boundary; nothing is retried automatically
except order-number collisions.
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from decimal import Decimal, InvalidOperation

import structlog

from ordering.config import Settings
from ordering.errors import (
    ConcurrentModification,
    Err,
    Ok,
    OrderError,
    Result,
    StoreError,
    StoreUnavailable,
    UniqueConstraintViolation,
)
from ordering.order.customer_stats import spend_categories, total_values, volume_categories
from ordering.order.numbering import OrderNumberGenerator
from ordering.order.order import Address, Order, OrderItem, OrderStatus
from ordering.order.pricing import (
    ZERO,
    PricingError,
    ShippingPolicy,
    TaxPolicy,
    compute_order_totals,
    to_money,
)
from ordering.publishing.publisher import OrderEventPublisher
from ordering.store.port import SORTABLE_FIELDS, OrderStore, PageRequest, SortDirection

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class OrderLifecycleService:
    def __init__(
        self,
        store: OrderStore,
        publisher: OrderEventPublisher,
        tax_policy: TaxPolicy | None = None,
        shipping_policy: ShippingPolicy | None = None,
        number_generator: Callable[[], str] | None = None,
        min_order_amount: Decimal = Decimal("10.00"),
        max_items_per_order: int = 100,
        max_notes_length: int = 1000,
        order_number_max_attempts: int = 3,
        default_page_size: int = 10,
        max_page_size: int = 100,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.publisher = publisher
        self.tax_policy = tax_policy or TaxPolicy()
        self.shipping_policy = shipping_policy or ShippingPolicy()
        self.number_generator = number_generator or OrderNumberGenerator()
        self.min_order_amount = to_money(min_order_amount)
        self.max_items_per_order = max_items_per_order
        self.max_notes_length = max_notes_length
        self.order_number_max_attempts = order_number_max_attempts
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size
        self.clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: OrderStore,
        publisher: OrderEventPublisher,
        **overrides,
    ) -> "OrderLifecycleService":
        options = {
            "tax_policy": TaxPolicy(rate=settings.tax_rate),
            "shipping_policy": ShippingPolicy(
                free_shipping_threshold=settings.free_shipping_threshold,
                flat_fee=settings.flat_shipping_fee,
            ),
            "min_order_amount": settings.min_order_amount,
            "max_items_per_order": settings.max_items_per_order,
            "max_notes_length": settings.max_notes_length,
            "order_number_max_attempts": settings.order_number_max_attempts,
            "default_page_size": settings.default_page_size,
            "max_page_size": settings.max_page_size,
        }
        options.update(overrides)
        return cls(store, publisher, **options)

    # -------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------
    def create_order(
        self,
        customer_id,
        items,
        shipping_address,
        billing_address=None,
        payment_method: str | None = None,
        notes: str | None = None,
        discount_amount=ZERO,
    ) -> Result:
        """Place a new PENDING order and publish ``OrderCreated``."""
        if customer_id is None or not str(customer_id).strip():
            return self._reject("create_order", OrderError.validation("CUSTOMER_ID_REQUIRED", "Customer id is required"))
        if not payment_method or not str(payment_method).strip():
            return self._reject(
                "create_order", OrderError.validation("PAYMENT_METHOD_REQUIRED", "Payment method is required")
            )
        if notes is not None and len(notes) > self.max_notes_length:
            return self._reject(
                "create_order",
                OrderError.validation(
                    "NOTES_TOO_LONG",
                    f"Notes must be at most {self.max_notes_length} characters",
                    max_length=self.max_notes_length,
                ),
            )

        result = self._build_items(items)
        if not result.is_ok:
            return self._reject("create_order", result.error)
        order_items = result.value

        result = self._build_address(shipping_address, "shipping_address")
        if not result.is_ok:
            return self._reject("create_order", result.error)
        shipping = result.value

        billing = None
        if billing_address is not None:
            result = self._build_address(billing_address, "billing_address")
            if not result.is_ok:
                return self._reject("create_order", result.error)
            billing = result.value

        try:
            discount = to_money(discount_amount or ZERO)
        except (InvalidOperation, TypeError, ValueError):
            discount = None
        if discount is None or discount < ZERO:
            return self._reject(
                "create_order", OrderError.validation("INVALID_DISCOUNT", "Discount must be a non-negative amount")
            )

        totals = compute_order_totals(order_items, self.tax_policy, self.shipping_policy, discount)
        if discount > totals.subtotal:
            return self._reject(
                "create_order",
                OrderError.validation("INVALID_DISCOUNT", "Discount cannot exceed the order subtotal"),
            )
        if totals.subtotal < self.min_order_amount:
            return self._reject(
                "create_order",
                OrderError.business_rule(
                    "MIN_ORDER_AMOUNT_NOT_MET",
                    f"Order amount {totals.subtotal} is below the minimum of {self.min_order_amount}",
                    amount=str(totals.subtotal),
                    minimum=str(self.min_order_amount),
                ),
            )

        order = Order.create(
            customer_id=str(customer_id).strip(),
            items=order_items,
            shipping_address=shipping,
            billing_address=billing,
            payment_method=str(payment_method).strip(),
            notes=notes,
            totals=totals,
            at=self.clock(),
        )

        try:
            saved = self._insert_with_order_number(order)
        except StoreError as exc:
            return self._reject("create_order", self._store_failure(exc))
        if saved is None:
            return self._reject(
                "create_order",
                OrderError.internal(
                    "ORDER_NUMBER_GENERATION_FAILED",
                    f"Could not generate a unique order number after {self.order_number_max_attempts} attempts",
                ),
            )

        logger.info(
            "Order created",
            order_id=saved.id,
            order_number=saved.order_number,
            customer_id=saved.customer_id,
            total_amount=str(saved.total_amount),
        )
        self.publisher.publish_created(saved)
        return Ok(saved)

    def _insert_with_order_number(self, order: Order) -> Order | None:
        """Persist ``order`` under a fresh order number, regenerating on collision.

        Returns None when every attempt collided.
        """
        for attempt in range(1, self.order_number_max_attempts + 1):
            order_number = self.number_generator()
            if self.store.exists_by_order_number(order_number):
                logger.warning("Order number already taken", order_number=order_number, attempt=attempt)
                continue

            order.assign_order_number(order_number)
            try:
                return self.store.save(order)
            except UniqueConstraintViolation:
                logger.warning("Order number collided on insert", order_number=order_number, attempt=attempt)

        return None

    def _build_items(self, items) -> Result:
        try:
            items = list(items or ())
        except TypeError:
            return Err(OrderError.validation("INVALID_ITEM", "Items must be a list of order items"))
        if not items:
            return Err(OrderError.validation("ORDER_ITEMS_REQUIRED", "Order must contain at least one item"))
        if len(items) > self.max_items_per_order:
            return Err(
                OrderError.validation(
                    "TOO_MANY_ITEMS",
                    f"Order cannot contain more than {self.max_items_per_order} items",
                    max_items=self.max_items_per_order,
                )
            )

        built = []
        for index, item in enumerate(items):
            if isinstance(item, OrderItem):
                built.append(item)
                continue
            try:
                built.append(OrderItem.from_dict(item))
            except PricingError as exc:
                return Err(OrderError.validation(exc.code, str(exc), item_index=index))
            except InvalidOperation:
                return Err(OrderError.validation("INVALID_PRICE", "Item amounts must be numeric", item_index=index))
            except (KeyError, TypeError) as exc:
                return Err(OrderError.validation("INVALID_ITEM", f"Item is missing field {exc}", item_index=index))
        return Ok(built)

    def _build_address(self, address, field_name: str) -> Result:
        if address is None:
            return Err(OrderError.validation("INVALID_ADDRESS", f"{field_name} is required", field=field_name))
        if isinstance(address, dict):
            address = Address.from_dict(address)

        missing = address.missing_fields()
        if missing:
            return Err(
                OrderError.validation(
                    "INVALID_ADDRESS",
                    f"{field_name} is missing {', '.join(missing)}",
                    field=field_name,
                    missing=missing,
                )
            )
        return Ok(address)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def get_order(self, order_id) -> Result:
        try:
            order = self.store.find_by_id(order_id)
        except StoreError as exc:
            return Err(self._store_failure(exc))
        if order is None:
            return Err(OrderError.not_found("id", order_id))
        return Ok(order)

    def get_order_by_number(self, order_number: str) -> Result:
        try:
            order = self.store.find_by_order_number(order_number)
        except StoreError as exc:
            return Err(self._store_failure(exc))
        if order is None:
            return Err(OrderError.not_found("orderNumber", order_number))
        return Ok(order)

    def get_customer_orders(
        self,
        customer_id,
        page: int = 0,
        size: int | None = None,
        sort_by: str = "created_at",
        sort_dir: str = "desc",
    ) -> Result:
        """A page of the customer's orders, newest first by default.

        Ties on the sort field are broken by order id in the same direction.
        """
        result = self._page_request(page, size, sort_by, sort_dir)
        if not result.is_ok:
            return result
        try:
            return Ok(self.store.find_by_customer_id(str(customer_id), result.value))
        except StoreError as exc:
            return Err(self._store_failure(exc))

    def get_orders_by_status(
        self,
        status,
        page: int = 0,
        size: int | None = None,
        sort_by: str = "created_at",
        sort_dir: str = "desc",
    ) -> Result:
        """A page of orders currently in ``status``, across all customers."""
        result = self._parse_status(status)
        if not result.is_ok:
            return result
        order_status = result.value

        result = self._page_request(page, size, sort_by, sort_dir)
        if not result.is_ok:
            return result
        try:
            return Ok(self.store.find_by_status(order_status, result.value))
        except StoreError as exc:
            return Err(self._store_failure(exc))

    def _page_request(self, page: int, size: int | None, sort_by: str, sort_dir: str) -> Result:
        size = self.default_page_size if size is None else size
        if page < 0 or size < 1 or size > self.max_page_size:
            return Err(
                OrderError.validation(
                    "INVALID_PAGE_REQUEST",
                    f"page must be >= 0 and size between 1 and {self.max_page_size}",
                )
            )
        sort_field = SORTABLE_FIELDS.get(sort_by)
        if sort_field is None:
            return Err(
                OrderError.validation(
                    "INVALID_SORT_FIELD",
                    f"Cannot sort by {sort_by}",
                    allowed=sorted(SORTABLE_FIELDS),
                )
            )
        try:
            direction = SortDirection(str(sort_dir).upper())
        except ValueError:
            return Err(OrderError.validation("INVALID_PAGE_REQUEST", f"Unknown sort direction {sort_dir}"))
        return Ok(PageRequest(page=page, size=size, sort_field=sort_field, direction=direction))

    def _parse_status(self, status) -> Result:
        if isinstance(status, OrderStatus):
            return Ok(status)
        try:
            return Ok(OrderStatus(str(status).upper()))
        except ValueError:
            return Err(OrderError.validation("INVALID_STATUS", f"Unknown order status {status}"))

    def find_stale_pending_orders(self, older_than: timedelta) -> Result:
        """PENDING orders created more than ``older_than`` ago, oldest first."""
        cutoff = self.clock() - older_than
        try:
            return Ok(self.store.find_pending_older_than(cutoff))
        except StoreError as exc:
            return Err(self._store_failure(exc))

    def count_customer_orders(self, customer_id, status=None) -> Result:
        if status is not None:
            result = self._parse_status(status)
            if not result.is_ok:
                return result
            status = result.value
        try:
            return Ok(self.store.count_by_customer_id_and_status(str(customer_id), status))
        except StoreError as exc:
            return Err(self._store_failure(exc))

    # -------------------------------------------------------------------
    # Customer statistics
    # -------------------------------------------------------------------
    def get_customer_spend_categories(self) -> Result:
        """Classify every customer by their largest single order."""
        return self._customer_stats("spend_categories", spend_categories)

    def get_customer_volume_categories(self) -> Result:
        """Classify every customer by the combined value of their orders."""
        return self._customer_stats("volume_categories", volume_categories)

    def get_customer_total_values(self) -> Result:
        """Total, count and average order value per customer, biggest spenders first."""
        return self._customer_stats("total_values", total_values)

    def _customer_stats(self, name: str, compute) -> Result:
        try:
            summaries = self.store.customer_order_summaries()
        except StoreError as exc:
            return Err(self._store_failure(exc))
        stats = compute(summaries)
        logger.info("Customer statistics computed", stats=name, customers=len(stats))
        return Ok(stats)

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def confirm_order(self, order_id, transaction_id: str) -> Result:
        """Confirm a PENDING order once payment has been captured."""
        return self._transition(
            "confirm_order",
            order_id,
            lambda order, at: order.confirm(transaction_id, at=at),
            self.publisher.publish_updated,
        )

    def cancel_order(self, order_id, reason: str) -> Result:
        """Cancel any order that is not yet DELIVERED or CANCELLED."""

        def cancel(order: Order, at: datetime) -> Result:
            if not order.is_cancellable():
                return Err(
                    OrderError.business_rule(
                        "ORDER_NOT_CANCELLABLE",
                        f"Order {order.order_number} cannot be cancelled in status {order.status.value}",
                        status_code=409,
                        status=order.status.value,
                    )
                )
            return order.cancel(reason, at=at)

        return self._transition("cancel_order", order_id, cancel, self.publisher.publish_cancelled)

    def start_processing(self, order_id) -> Result:
        return self._transition(
            "start_processing",
            order_id,
            lambda order, at: order.start_processing(at=at),
            self.publisher.publish_updated,
        )

    def ship_order(self, order_id) -> Result:
        return self._transition(
            "ship_order",
            order_id,
            lambda order, at: order.ship(at=at),
            self.publisher.publish_updated,
        )

    def deliver_order(self, order_id) -> Result:
        return self._transition(
            "deliver_order",
            order_id,
            lambda order, at: order.deliver(at=at),
            self.publisher.publish_updated,
        )

    def _transition(self, operation: str, order_id, apply, publish) -> Result:
        try:
            order = self.store.find_by_id(order_id)
            if order is None:
                return self._reject(operation, OrderError.not_found("id", order_id))

            previous = order.status
            result = apply(order, self.clock())
            if not result.is_ok:
                return self._reject(operation, result.error, order_id=order.id)

            saved = self.store.save(order)
        except StoreError as exc:
            return self._reject(operation, self._store_failure(exc), order_id=order_id)

        logger.info(
            "Order status changed",
            operation=operation,
            order_id=saved.id,
            order_number=saved.order_number,
            from_status=previous.value,
            to_status=saved.status.value,
        )
        publish(saved)
        return Ok(saved)

    # -------------------------------------------------------------------
    # Failure mapping
    # -------------------------------------------------------------------
    def _store_failure(self, exc: StoreError) -> OrderError:
        if isinstance(exc, ConcurrentModification):
            return OrderError.conflict(str(exc))
        if isinstance(exc, StoreUnavailable):
            return OrderError.unavailable(str(exc) or "Order store unavailable")
        return OrderError.unavailable(f"Order store failure: {exc}")

    def _reject(self, operation: str, error: OrderError, **context) -> Err:
        logger.warning(
            "Order operation rejected",
            operation=operation,
            code=error.code,
            reason=error.message,
            **context,
        )
        return Err(error)
