"""Runtime configuration for the Ordering service.

Settings are read from ``ORDERING_*`` environment variables, so the same
build can run with the in-memory store in tests and a SQL database plus
Redis Streams in production. ``ORDERING_ENV`` names the environment and also
drives the log level and renderer (see ``ordering.utils.logging``).
"""

import os
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

_ENV_PREFIX = "ORDERING_"


class Settings(BaseModel):
    env: str = "development"

    # Pricing
    tax_rate: Decimal = Field(default=Decimal("0.10"), ge=0)
    free_shipping_threshold: Decimal = Field(default=Decimal("50.00"), ge=0)
    flat_shipping_fee: Decimal = Field(default=Decimal("5.00"), ge=0)
    min_order_amount: Decimal = Field(default=Decimal("10.00"), ge=0)

    # Order rules
    max_items_per_order: int = Field(default=100, ge=1)
    max_notes_length: int = Field(default=1000, ge=0)
    order_number_max_attempts: int = Field(default=3, ge=1)

    # Persistence
    store_backend: Literal["memory", "sqlalchemy"] = "memory"
    database_uri: str = "sqlite:///:memory:"
    store_timeout_seconds: float = Field(default=5.0, gt=0)

    # Event publication
    event_sink: Literal["fake", "redis"] = "fake"
    redis_url: str = "redis://localhost:6379/0"
    redis_stream_maxlen: int = Field(default=10_000, ge=1)
    publish_in_background: bool = False

    # Pagination
    default_page_size: int = Field(default=10, ge=1)
    max_page_size: int = Field(default=100, ge=1)

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        """Build settings from ``ORDERING_*`` variables; unknown keys are ignored."""
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            key = f"{_ENV_PREFIX}{name.upper()}"
            if key in environ:
                values[name] = environ[key]
        return cls(**values)

    @property
    def is_production(self) -> bool:
        return self.env.lower() in ("production", "staging")
