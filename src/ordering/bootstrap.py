"""Composition root for the Ordering service.

Builds the store, event sink, publisher and lifecycle service from
``Settings``. Nothing else in the package constructs adapters, so tests and
the HTTP app can swap any piece by passing their own.
"""

from concurrent.futures import ThreadPoolExecutor

import structlog

from ordering.config import Settings
from ordering.order.service import OrderLifecycleService
from ordering.publishing.fake_sink import FakeEventSink
from ordering.publishing.port import EventSink
from ordering.publishing.publisher import OrderEventPublisher
from ordering.publishing.redis_sink import RedisStreamEventSink
from ordering.store.memory import InMemoryOrderStore
from ordering.store.port import OrderStore
from ordering.store.sql import SqlAlchemyOrderStore, create_store_engine

logger = structlog.get_logger(__name__)


def build_store(settings: Settings) -> OrderStore:
    if settings.store_backend == "sqlalchemy":
        engine = create_store_engine(settings.database_uri, settings.store_timeout_seconds)
        store = SqlAlchemyOrderStore(engine)
        store.create_schema()
        return store
    return InMemoryOrderStore(timeout_seconds=settings.store_timeout_seconds)


def build_event_sink(settings: Settings) -> EventSink:
    if settings.event_sink == "redis":
        return RedisStreamEventSink.from_url(settings.redis_url, maxlen=settings.redis_stream_maxlen)
    return FakeEventSink()


def build_publisher(settings: Settings, sink: EventSink) -> OrderEventPublisher:
    executor = None
    if settings.publish_in_background:
        executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="order-events")
    return OrderEventPublisher(sink, executor=executor)


def build_order_service(
    settings: Settings | None = None,
    store: OrderStore | None = None,
    sink: EventSink | None = None,
) -> OrderLifecycleService:
    settings = settings or Settings.from_env()
    store = store or build_store(settings)
    sink = sink or build_event_sink(settings)
    publisher = build_publisher(settings, sink)

    logger.info(
        "Order service configured",
        env=settings.env,
        store=type(store).__name__,
        sink=type(sink).__name__,
        background_publishing=settings.publish_in_background,
    )
    return OrderLifecycleService.from_settings(settings, store, publisher)
