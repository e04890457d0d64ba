"""Configurable fake event sink for development and testing.

Records every accepted event in memory instead of writing to a broker. It can
be switched to fail at runtime, which is how tests exercise the
"log and continue" path of the publisher.
"""

from dataclasses import dataclass

from ordering.publishing.port import EventSink, PublishError


@dataclass(frozen=True)
class PublishedEvent:
    topic: str
    key: str
    payload: dict


class FakeEventSink(EventSink):
    """Configurable fake event sink."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Broker unavailable"
        self.published: list[PublishedEvent] = []
        self.attempts: int = 0

    def configure(self, should_succeed: bool, failure_reason: str = "Broker unavailable") -> None:
        """Configure sink behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def publish(self, topic: str, key: str, payload: dict) -> None:
        self.attempts += 1
        if not self.should_succeed:
            raise PublishError(self.failure_reason)
        self.published.append(PublishedEvent(topic=topic, key=key, payload=dict(payload)))

    def events_for(self, topic: str) -> list[PublishedEvent]:
        return [event for event in self.published if event.topic == topic]

    def reset(self) -> None:
        self.should_succeed = True
        self.failure_reason = "Broker unavailable"
        self.published.clear()
        self.attempts = 0
