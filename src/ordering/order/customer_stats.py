"""Per-customer order statistics.

Customers are ranked two ways against the same thresholds: by their single
largest order (spend category) and by the sum of all their orders (volume
category). Every order counts, whatever its status.

    amount > 50000            HIGH
    20000 <= amount <= 50000  MID
    amount < 20000            LOW
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from ordering.order.pricing import CENT, ZERO, to_money

HIGH_THRESHOLD = Decimal("50000")
MID_THRESHOLD = Decimal("20000")


class SpendCategory(Enum):
    HIGH_SPEND = "HIGH_SPEND"
    MID_SPEND = "MID_SPEND"
    LOW_SPEND = "LOW_SPEND"

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


class VolumeCategory(Enum):
    HIGH_VOLUME = "HIGH_VOLUME"
    MID_VOLUME = "MID_VOLUME"
    LOW_VOLUME = "LOW_VOLUME"

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    SpendCategory.HIGH_SPEND: "High Spend User",
    SpendCategory.MID_SPEND: "Mid Spend User",
    SpendCategory.LOW_SPEND: "Low Spend User",
    VolumeCategory.HIGH_VOLUME: "High Volume Spend Customer",
    VolumeCategory.MID_VOLUME: "Mid Volume Spend Customer",
    VolumeCategory.LOW_VOLUME: "Low Volume Spend Customer",
}


def classify_spend(highest_order_amount) -> SpendCategory:
    amount = to_money(highest_order_amount)
    if amount > HIGH_THRESHOLD:
        return SpendCategory.HIGH_SPEND
    if amount >= MID_THRESHOLD:
        return SpendCategory.MID_SPEND
    return SpendCategory.LOW_SPEND


def classify_volume(total_order_value) -> VolumeCategory:
    amount = to_money(total_order_value)
    if amount > HIGH_THRESHOLD:
        return VolumeCategory.HIGH_VOLUME
    if amount >= MID_THRESHOLD:
        return VolumeCategory.MID_VOLUME
    return VolumeCategory.LOW_VOLUME


@dataclass(frozen=True)
class CustomerOrderSummary:
    """Aggregate of one customer's orders as reported by the store."""

    customer_id: str
    order_count: int
    total_value: Decimal
    highest_order_value: Decimal


@dataclass(frozen=True)
class CustomerSpendCategory:
    customer_id: str
    spend_category: SpendCategory
    highest_transaction_amount: Decimal
    total_transactions: int


@dataclass(frozen=True)
class CustomerVolumeCategory:
    customer_id: str
    volume_category: VolumeCategory
    total_order_value: Decimal
    total_orders: int


@dataclass(frozen=True)
class CustomerTotalValue:
    customer_id: str
    total_value: Decimal
    order_count: int
    average_order_value: Decimal


def spend_categories(summaries) -> list[CustomerSpendCategory]:
    """One entry per customer, ordered by customer id."""
    return [
        CustomerSpendCategory(
            customer_id=summary.customer_id,
            spend_category=classify_spend(summary.highest_order_value),
            highest_transaction_amount=to_money(summary.highest_order_value),
            total_transactions=summary.order_count,
        )
        for summary in sorted(summaries, key=lambda s: s.customer_id)
    ]


def volume_categories(summaries) -> list[CustomerVolumeCategory]:
    """One entry per customer, ordered by customer id."""
    return [
        CustomerVolumeCategory(
            customer_id=summary.customer_id,
            volume_category=classify_volume(summary.total_value),
            total_order_value=to_money(summary.total_value),
            total_orders=summary.order_count,
        )
        for summary in sorted(summaries, key=lambda s: s.customer_id)
    ]


def average_order_value(total_value, order_count: int) -> Decimal:
    if order_count <= 0:
        return ZERO
    return (to_money(total_value) / order_count).quantize(CENT, rounding=ROUND_HALF_UP)


def total_values(summaries) -> list[CustomerTotalValue]:
    """Highest total first; equal totals fall back to customer id."""
    values = [
        CustomerTotalValue(
            customer_id=summary.customer_id,
            total_value=to_money(summary.total_value),
            order_count=summary.order_count,
            average_order_value=average_order_value(summary.total_value, summary.order_count),
        )
        for summary in summaries
    ]
    values.sort(key=lambda value: value.customer_id)
    values.sort(key=lambda value: value.total_value, reverse=True)
    return values
