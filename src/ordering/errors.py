"""Error taxonomy and result values for the Ordering domain.

Lifecycle operations never raise for expected failures. They return either
``Ok(value)`` or ``Err(OrderError)`` so that callers handle the failure path
explicitly. Store adapters raise ``StoreError`` subclasses at the persistence
boundary; the lifecycle service converts those into ``Err`` values.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Generic, TypeVar

T = TypeVar("T")


class ErrorKind(Enum):
    VALIDATION = "Validation"
    BUSINESS_RULE = "Business_Rule"
    INVALID_TRANSITION = "Invalid_Transition"
    NOT_FOUND = "Not_Found"
    CONFLICT = "Conflict"
    UNAVAILABLE = "Unavailable"
    INTERNAL = "Internal"


_DEFAULT_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.BUSINESS_RULE: 400,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.UNAVAILABLE: 503,
    ErrorKind.INTERNAL: 500,
}

_RETRYABLE_KINDS = {ErrorKind.CONFLICT, ErrorKind.UNAVAILABLE}


@dataclass(frozen=True)
class OrderError:
    """A failure with a stable, machine-readable code."""

    kind: ErrorKind
    code: str
    message: str
    status_code: int | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.status_code is None:
            object.__setattr__(self, "status_code", _DEFAULT_STATUS[self.kind])

    @property
    def retryable(self) -> bool:
        return self.kind in _RETRYABLE_KINDS

    def to_dict(self) -> dict:
        data = {"code": self.code, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data

    # -------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------
    @classmethod
    def validation(cls, code: str, message: str, **details) -> "OrderError":
        return cls(ErrorKind.VALIDATION, code, message, details=details)

    @classmethod
    def business_rule(cls, code: str, message: str, status_code: int = 400, **details) -> "OrderError":
        return cls(ErrorKind.BUSINESS_RULE, code, message, status_code=status_code, details=details)

    @classmethod
    def invalid_transition(cls, current, target) -> "OrderError":
        return cls(
            ErrorKind.INVALID_TRANSITION,
            "INVALID_STATE_TRANSITION",
            f"Cannot transition from {current.value} to {target.value}",
            details={"from": current.value, "to": target.value},
        )

    @classmethod
    def not_found(cls, lookup: str, value) -> "OrderError":
        return cls(
            ErrorKind.NOT_FOUND,
            "ORDER_NOT_FOUND",
            f"Order not found with {lookup}: {value}",
            details={lookup: str(value)},
        )

    @classmethod
    def conflict(cls, message: str) -> "OrderError":
        return cls(ErrorKind.CONFLICT, "CONCURRENT_MODIFICATION", message)

    @classmethod
    def unavailable(cls, message: str) -> "OrderError":
        return cls(ErrorKind.UNAVAILABLE, "STORE_UNAVAILABLE", message)

    @classmethod
    def internal(cls, code: str, message: str) -> "OrderError":
        return cls(ErrorKind.INTERNAL, code, message)


# ---------------------------------------------------------------------------
# Result values
# ---------------------------------------------------------------------------
class UnwrapError(RuntimeError):
    """Raised when unwrapping an ``Err`` as if it were an ``Ok``."""

    def __init__(self, error: OrderError):
        super().__init__(f"{error.code}: {error.message}")
        self.error = error


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    is_ok: ClassVar[bool] = True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: OrderError

    is_ok: ClassVar[bool] = False

    def unwrap(self):
        raise UnwrapError(self.error)


Result = Ok[T] | Err


# ---------------------------------------------------------------------------
# Persistence boundary exceptions
# ---------------------------------------------------------------------------
class StoreError(Exception):
    """Base class for failures raised by OrderStore adapters."""


class ConcurrentModification(StoreError):
    """The stored version differs from the version the caller loaded."""

    def __init__(self, order_id, expected_version: int, actual_version: int | None):
        super().__init__(
            f"Order {order_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )
        self.order_id = order_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class UniqueConstraintViolation(StoreError):
    """An order with the same order number already exists."""

    def __init__(self, order_number: str):
        super().__init__(f"Order number already exists: {order_number}")
        self.order_number = order_number


class StoreUnavailable(StoreError):
    """The store could not be reached or timed out."""
