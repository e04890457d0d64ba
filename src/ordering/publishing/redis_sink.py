"""Redis Streams event sink.

Each topic is a Redis stream. An event becomes one stream entry with two
fields, ``key`` (the order id) and ``payload`` (JSON). Streams are trimmed
approximately to ``maxlen`` entries so an unconsumed stream cannot grow
without bound.
"""

import json

import redis
import structlog

from ordering.publishing.port import EventSink, PublishError

logger = structlog.get_logger(__name__)


class RedisStreamEventSink(EventSink):
    def __init__(self, client: redis.Redis, maxlen: int = 10_000):
        self._client = client
        self._maxlen = maxlen

    @classmethod
    def from_url(cls, url: str, maxlen: int = 10_000, timeout_seconds: float = 2.0) -> "RedisStreamEventSink":
        client = redis.Redis.from_url(
            url,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
            decode_responses=True,
        )
        return cls(client, maxlen=maxlen)

    def publish(self, topic: str, key: str, payload: dict) -> None:
        fields = {"key": key, "payload": json.dumps(payload)}
        try:
            entry_id = self._client.xadd(topic, fields, maxlen=self._maxlen, approximate=True)
        except redis.RedisError as exc:
            raise PublishError(f"XADD to {topic} failed: {exc}") from exc

        logger.debug("Event appended to stream", topic=topic, key=key, entry_id=entry_id)
