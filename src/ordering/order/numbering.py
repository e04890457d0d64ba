"""Human-readable order numbers: ``ORD-{epoch-millis}-{8 uppercase hex}``."""

import time
from collections.abc import Callable
from uuid import uuid4

ORDER_NUMBER_PREFIX = "ORD"
SUFFIX_LENGTH = 8


def _millis() -> int:
    return time.time_ns() // 1_000_000


def _random_suffix() -> str:
    return uuid4().hex[:SUFFIX_LENGTH].upper()


class OrderNumberGenerator:
    """Generates order numbers.

    Uniqueness is enforced by the store; callers regenerate on collision.
    The clock and suffix source are injectable for tests.
    """

    def __init__(
        self,
        clock_millis: Callable[[], int] = _millis,
        suffix_source: Callable[[], str] = _random_suffix,
    ):
        self._clock_millis = clock_millis
        self._suffix_source = suffix_source

    def __call__(self) -> str:
        return self.generate()

    def generate(self) -> str:
        return f"{ORDER_NUMBER_PREFIX}-{self._clock_millis()}-{self._suffix_source()}"


def generate_order_number() -> str:
    return OrderNumberGenerator().generate()
