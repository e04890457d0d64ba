"""Best-effort publisher for order lifecycle events.

The publisher is called only after the order has been persisted. A failed
publish is logged and dropped: it never raises into the lifecycle service and
never undoes the write that produced the event. Reconciliation of dropped
events (replaying from the store) is left to an external process.

With an ``executor`` the sink call runs as a background task so a slow
broker cannot hold up the response; failures of that task are logged by a
done-callback.
"""

from concurrent.futures import Executor, Future

import structlog

from ordering.order.events import OrderCancelled, OrderCreated, OrderEvent, OrderUpdated
from ordering.publishing.port import EventSink

logger = structlog.get_logger(__name__)


class OrderEventPublisher:
    def __init__(self, sink: EventSink, executor: Executor | None = None):
        self.sink = sink
        self.executor = executor

    def publish(self, event: OrderEvent) -> bool:
        """Hand ``event`` to the sink.

        Returns True when the sink accepted the event (or, in background mode,
        when the task was scheduled) and False when it was dropped.
        """
        if self.executor is not None:
            try:
                future = self.executor.submit(self._send, event)
            except RuntimeError as exc:
                # Executor already shut down
                self._log_failure(event, exc)
                return False
            future.add_done_callback(lambda done: self._on_done(event, done))
            return True

        try:
            self._send(event)
        except Exception as exc:
            self._log_failure(event, exc)
            return False
        return True

    def publish_created(self, order) -> bool:
        return self.publish(OrderCreated.from_order(order))

    def publish_updated(self, order) -> bool:
        return self.publish(OrderUpdated.from_order(order))

    def publish_cancelled(self, order) -> bool:
        return self.publish(OrderCancelled.from_order(order))

    def close(self) -> None:
        """Wait for scheduled background publications, then stop the executor."""
        if self.executor is not None:
            self.executor.shutdown(wait=True)
            logger.info("Order event publisher closed")

    def _send(self, event: OrderEvent) -> None:
        self.sink.publish(event.topic, event.key, event.to_payload())
        logger.info("Order event published", topic=event.topic, order_id=event.key)

    def _on_done(self, event: OrderEvent, future: Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            self._log_failure(event, exc)

    def _log_failure(self, event: OrderEvent, exc: BaseException) -> None:
        logger.error(
            "Failed to publish order event",
            topic=event.topic,
            order_id=event.key,
            error=str(exc),
        )
