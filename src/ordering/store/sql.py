"""SQLAlchemy-backed order store.

Orders live in ``orders`` with their line items in ``order_items``. Money
columns are ``NUMERIC(12, 2)``. Updates are guarded by a version column:
``UPDATE ... WHERE id = :id AND version = :expected`` must touch exactly one
row or the write is rejected with ``ConcurrentModification``. Line items are
written once on insert; orders are never deleted.
"""

import copy
from contextlib import contextmanager
from datetime import UTC, datetime

import structlog
from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    create_engine,
    func,
    select,
    update,
)
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from ordering.errors import ConcurrentModification, StoreUnavailable, UniqueConstraintViolation
from ordering.order.customer_stats import CustomerOrderSummary
from ordering.order.order import Address, Order, OrderItem, OrderStatus
from ordering.order.pricing import ZERO, to_money
from ordering.store.port import OrderStore, Page, PageRequest, SortDirection

logger = structlog.get_logger(__name__)

Base = declarative_base()

MONEY = Numeric(12, 2)


class OrderRecord(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(String(50), nullable=False, unique=True)
    customer_id = Column(String(64), nullable=False, index=True)
    status = Column(String(20), nullable=False, index=True)

    subtotal = Column(MONEY, nullable=False)
    tax_amount = Column(MONEY, nullable=False)
    shipping_cost = Column(MONEY, nullable=False)
    discount_amount = Column(MONEY, nullable=False)
    total_amount = Column(MONEY, nullable=False)

    payment_method = Column(String(50))
    payment_transaction_id = Column(String(100))

    shipping_street = Column(String(255), nullable=False)
    shipping_city = Column(String(100), nullable=False)
    shipping_state = Column(String(100), nullable=False)
    shipping_zip_code = Column(String(20), nullable=False)
    shipping_country = Column(String(100), nullable=False)
    billing_street = Column(String(255), nullable=False)
    billing_city = Column(String(100), nullable=False)
    billing_state = Column(String(100), nullable=False)
    billing_zip_code = Column(String(20), nullable=False)
    billing_country = Column(String(100), nullable=False)

    notes = Column(Text)
    confirmed_at = Column(DateTime(timezone=True))
    shipped_at = Column(DateTime(timezone=True))
    delivered_at = Column(DateTime(timezone=True))
    cancelled_at = Column(DateTime(timezone=True))
    cancellation_reason = Column(String(500))
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    version = Column(Integer, nullable=False)

    items = relationship(
        "OrderItemRecord",
        order_by="OrderItemRecord.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class OrderItemRecord(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    product_id = Column(String(100), nullable=False, index=True)
    product_name = Column(String(200), nullable=False)
    sku = Column(String(100))
    quantity = Column(Integer, nullable=False)
    unit_price = Column(MONEY, nullable=False)
    discount = Column(MONEY, nullable=False)
    tax_amount = Column(MONEY, nullable=False)
    total_price = Column(MONEY, nullable=False)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------
def create_store_engine(database_uri: str, timeout_seconds: float = 5.0) -> Engine:
    """Create an engine whose connection waits are bounded by ``timeout_seconds``."""
    if database_uri.startswith("sqlite"):
        kwargs = {"connect_args": {"timeout": timeout_seconds, "check_same_thread": False}}
        if ":memory:" in database_uri or database_uri in ("sqlite://", "sqlite:///"):
            # One shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
        return create_engine(database_uri, **kwargs)

    connect_args = {}
    if database_uri.startswith("postgresql"):
        connect_args = {
            "connect_timeout": max(1, int(timeout_seconds)),
            "options": f"-c statement_timeout={int(timeout_seconds * 1000)}",
        }
    return create_engine(
        database_uri,
        pool_timeout=timeout_seconds,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


# ---------------------------------------------------------------------------
# Mapping
# ---------------------------------------------------------------------------
def _aware(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo; everything is stored in UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _to_record(order: Order) -> OrderRecord:
    shipping, billing = order.shipping_address, order.billing_address
    return OrderRecord(
        order_number=order.order_number,
        customer_id=order.customer_id,
        status=order.status.value,
        subtotal=order.subtotal,
        tax_amount=order.tax_amount,
        shipping_cost=order.shipping_cost,
        discount_amount=order.discount_amount,
        total_amount=order.total_amount,
        payment_method=order.payment_method,
        payment_transaction_id=order.payment_transaction_id,
        shipping_street=shipping.street,
        shipping_city=shipping.city,
        shipping_state=shipping.state,
        shipping_zip_code=shipping.zip_code,
        shipping_country=shipping.country,
        billing_street=billing.street,
        billing_city=billing.city,
        billing_state=billing.state,
        billing_zip_code=billing.zip_code,
        billing_country=billing.country,
        notes=order.notes,
        confirmed_at=order.confirmed_at,
        shipped_at=order.shipped_at,
        delivered_at=order.delivered_at,
        cancelled_at=order.cancelled_at,
        cancellation_reason=order.cancellation_reason,
        created_at=order.created_at,
        updated_at=order.updated_at,
        version=1,
        items=[
            OrderItemRecord(
                position=position,
                product_id=item.product_id,
                product_name=item.product_name,
                sku=item.sku,
                quantity=item.quantity,
                unit_price=item.unit_price,
                discount=item.discount,
                tax_amount=item.tax_amount,
                total_price=item.total_price,
            )
            for position, item in enumerate(order.items)
        ],
    )


def _to_domain(record: OrderRecord) -> Order:
    return Order(
        id=record.id,
        order_number=record.order_number,
        customer_id=record.customer_id,
        status=OrderStatus(record.status),
        items=tuple(
            OrderItem(
                product_id=item.product_id,
                product_name=item.product_name,
                sku=item.sku,
                quantity=item.quantity,
                unit_price=item.unit_price,
                discount=item.discount,
                tax_amount=item.tax_amount,
            )
            for item in record.items
        ),
        shipping_address=Address(
            street=record.shipping_street,
            city=record.shipping_city,
            state=record.shipping_state,
            zip_code=record.shipping_zip_code,
            country=record.shipping_country,
        ),
        billing_address=Address(
            street=record.billing_street,
            city=record.billing_city,
            state=record.billing_state,
            zip_code=record.billing_zip_code,
            country=record.billing_country,
        ),
        subtotal=record.subtotal,
        tax_amount=record.tax_amount,
        shipping_cost=record.shipping_cost,
        discount_amount=record.discount_amount,
        total_amount=record.total_amount,
        payment_method=record.payment_method,
        payment_transaction_id=record.payment_transaction_id,
        notes=record.notes,
        confirmed_at=_aware(record.confirmed_at),
        shipped_at=_aware(record.shipped_at),
        delivered_at=_aware(record.delivered_at),
        cancelled_at=_aware(record.cancelled_at),
        cancellation_reason=record.cancellation_reason,
        created_at=_aware(record.created_at),
        updated_at=_aware(record.updated_at),
        version=record.version,
    )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------
class SqlAlchemyOrderStore(OrderStore):
    def __init__(self, engine: Engine):
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    def create_schema(self) -> None:
        Base.metadata.create_all(self._engine)

    def drop_schema(self) -> None:
        Base.metadata.drop_all(self._engine)

    @contextmanager
    def _session(self):
        session = self._session_factory()
        try:
            yield session
        except (sa_exc.OperationalError, sa_exc.TimeoutError) as exc:
            session.rollback()
            logger.error("Order store unavailable", error=str(exc))
            raise StoreUnavailable(str(exc)) from exc
        finally:
            session.close()

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------
    def save(self, order: Order) -> Order:
        if order.id is None:
            return self._insert(order)
        return self._update(order)

    def _insert(self, order: Order) -> Order:
        with self._session() as session:
            record = _to_record(order)
            session.add(record)
            try:
                session.commit()
            except sa_exc.IntegrityError as exc:
                session.rollback()
                raise UniqueConstraintViolation(order.order_number) from exc
            return _to_domain(record)

    def _update(self, order: Order) -> Order:
        with self._session() as session:
            result = session.execute(
                update(OrderRecord)
                .where(OrderRecord.id == order.id, OrderRecord.version == order.version)
                .values(
                    status=order.status.value,
                    payment_transaction_id=order.payment_transaction_id,
                    confirmed_at=order.confirmed_at,
                    shipped_at=order.shipped_at,
                    delivered_at=order.delivered_at,
                    cancelled_at=order.cancelled_at,
                    cancellation_reason=order.cancellation_reason,
                    updated_at=order.updated_at,
                    version=order.version + 1,
                )
            )
            if result.rowcount != 1:
                session.rollback()
                actual = session.scalar(select(OrderRecord.version).where(OrderRecord.id == order.id))
                raise ConcurrentModification(order.id, expected_version=order.version, actual_version=actual)
            session.commit()

        stored = copy.deepcopy(order)
        stored.version = order.version + 1
        return stored

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def find_by_id(self, order_id) -> Order | None:
        try:
            key = int(order_id)
        except (TypeError, ValueError):
            return None
        with self._session() as session:
            record = session.get(OrderRecord, key)
            return _to_domain(record) if record else None

    def find_by_order_number(self, order_number: str) -> Order | None:
        with self._session() as session:
            record = session.scalars(select(OrderRecord).where(OrderRecord.order_number == order_number)).first()
            return _to_domain(record) if record else None

    def exists_by_order_number(self, order_number: str) -> bool:
        with self._session() as session:
            found = session.scalar(select(OrderRecord.id).where(OrderRecord.order_number == order_number))
            return found is not None

    def _page(self, session, criteria, page_request: PageRequest) -> Page[Order]:
        column = getattr(OrderRecord, page_request.sort_field)
        if page_request.direction == SortDirection.DESC:
            ordering = (column.desc(), OrderRecord.id.desc())
        else:
            ordering = (column.asc(), OrderRecord.id.asc())

        total = session.scalar(select(func.count()).select_from(OrderRecord).where(*criteria))
        records = session.scalars(
            select(OrderRecord)
            .where(*criteria)
            .order_by(*ordering)
            .offset(page_request.offset)
            .limit(page_request.size)
        ).all()
        return Page(
            items=[_to_domain(record) for record in records],
            page=page_request.page,
            size=page_request.size,
            total_elements=total or 0,
        )

    def find_by_customer_id(self, customer_id: str, page_request: PageRequest) -> Page[Order]:
        with self._session() as session:
            return self._page(session, [OrderRecord.customer_id == str(customer_id)], page_request)

    def find_by_status(self, status: OrderStatus, page_request: PageRequest) -> Page[Order]:
        with self._session() as session:
            return self._page(session, [OrderRecord.status == status.value], page_request)

    def find_pending_older_than(self, cutoff: datetime) -> list[Order]:
        with self._session() as session:
            records = session.scalars(
                select(OrderRecord)
                .where(
                    OrderRecord.status == OrderStatus.PENDING.value,
                    OrderRecord.created_at < cutoff,
                )
                .order_by(OrderRecord.created_at.asc(), OrderRecord.id.asc())
            ).all()
            return [_to_domain(record) for record in records]

    def count_by_customer_id_and_status(self, customer_id: str, status: OrderStatus | None = None) -> int:
        criteria = [OrderRecord.customer_id == str(customer_id)]
        if status is not None:
            criteria.append(OrderRecord.status == status.value)
        with self._session() as session:
            return session.scalar(select(func.count()).select_from(OrderRecord).where(*criteria)) or 0

    def customer_order_summaries(self) -> list[CustomerOrderSummary]:
        query = select(
            OrderRecord.customer_id,
            func.count(OrderRecord.id),
            func.sum(OrderRecord.total_amount),
            func.max(OrderRecord.total_amount),
        ).group_by(OrderRecord.customer_id)
        with self._session() as session:
            return [
                CustomerOrderSummary(
                    customer_id=customer_id,
                    order_count=order_count,
                    total_value=to_money(total_value or ZERO),
                    highest_order_value=to_money(highest_value or ZERO),
                )
                for customer_id, order_count, total_value, highest_value in session.execute(query)
            ]
