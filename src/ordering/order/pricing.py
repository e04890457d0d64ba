"""Monetary calculator for orders.

Pure functions over ``decimal.Decimal``. Every persisted amount is quantized
to two decimal places with half-up rounding; floats are converted through
their string form and never take part in arithmetic.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


class PricingError(ValueError):
    """Base class for invalid line item amounts."""

    code = "INVALID_AMOUNT"


class InvalidQuantity(PricingError):
    code = "INVALID_QUANTITY"


class InvalidPrice(PricingError):
    code = "INVALID_PRICE"


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def to_money(value) -> Decimal:
    """Quantize to cents, half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class TaxPolicy:
    rate: Decimal = Decimal("0.10")

    def tax_for(self, subtotal: Decimal) -> Decimal:
        return to_money(subtotal * to_decimal(self.rate))


@dataclass(frozen=True)
class ShippingPolicy:
    """Flat-fee shipping that becomes free at or above a threshold."""

    free_shipping_threshold: Decimal = Decimal("50.00")
    flat_fee: Decimal = Decimal("5.00")

    def shipping_for(self, subtotal: Decimal) -> Decimal:
        if subtotal >= to_decimal(self.free_shipping_threshold):
            return ZERO
        return to_money(self.flat_fee)


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    tax_amount: Decimal
    shipping_cost: Decimal
    discount_amount: Decimal
    total_amount: Decimal


def compute_item_total(item) -> Decimal:
    """Line total: ``quantity * unit_price - discount + tax_amount``.

    ``item`` is anything exposing ``quantity``, ``unit_price``, ``discount``
    and ``tax_amount``.
    """
    try:
        quantity = int(item.quantity)
    except (TypeError, ValueError):
        raise InvalidQuantity(f"Quantity must be a whole number, got {item.quantity!r}") from None
    if quantity != item.quantity:
        raise InvalidQuantity(f"Quantity must be a whole number, got {item.quantity!r}")
    unit_price = to_decimal(item.unit_price)
    discount = to_decimal(item.discount or 0)
    tax_amount = to_decimal(item.tax_amount or 0)

    if quantity < 1:
        raise InvalidQuantity(f"Quantity must be at least 1, got {quantity}")
    if unit_price < 0:
        raise InvalidPrice(f"Unit price must not be negative, got {unit_price}")
    if discount < 0:
        raise InvalidPrice(f"Discount must not be negative, got {discount}")
    if tax_amount < 0:
        raise InvalidPrice(f"Tax amount must not be negative, got {tax_amount}")

    return to_money(unit_price * quantity - discount + tax_amount)


def compute_total_amount(subtotal, tax_amount, shipping_cost, discount_amount) -> Decimal:
    return to_money(
        to_money(subtotal) + to_money(tax_amount) + to_money(shipping_cost) - to_money(discount_amount)
    )


def compute_order_totals(
    items,
    tax_policy: TaxPolicy | None = None,
    shipping_policy: ShippingPolicy | None = None,
    discount=ZERO,
) -> OrderTotals:
    tax_policy = tax_policy or TaxPolicy()
    shipping_policy = shipping_policy or ShippingPolicy()

    subtotal = to_money(sum((compute_item_total(item) for item in items), ZERO))
    tax_amount = tax_policy.tax_for(subtotal)
    shipping_cost = shipping_policy.shipping_for(subtotal)
    discount_amount = to_money(discount or ZERO)

    return OrderTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        shipping_cost=shipping_cost,
        discount_amount=discount_amount,
        total_amount=compute_total_amount(subtotal, tax_amount, shipping_cost, discount_amount),
    )
