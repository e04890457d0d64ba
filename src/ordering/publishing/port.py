"""Event sink port (abstract interface).

A sink writes one serialized event to a durable log. It knows nothing about
orders: the topic names the stream, the key preserves per-order ordering in a
partitioned log, and the payload is a JSON-serializable dict.
"""

from abc import ABC, abstractmethod


class PublishError(Exception):
    """Raised by a sink when an event could not be written."""


class EventSink(ABC):
    """Abstract event sink interface."""

    @abstractmethod
    def publish(self, topic: str, key: str, payload: dict) -> None:
        """Write one event. Any exception means the event was not accepted."""
        ...
