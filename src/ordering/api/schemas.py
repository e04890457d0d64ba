"""Pydantic request/response schemas for the Ordering API.

These are external contracts, separate from the domain objects. Fields are
snake_case in Python and camelCase on the wire; amounts travel as decimal
strings. Request models are deliberately lenient about blank values so that
the lifecycle service reports them with its own error codes.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from ordering.order.customer_stats import CustomerSpendCategory, CustomerTotalValue, CustomerVolumeCategory
from ordering.order.order import Address, Order, OrderItem


class CamelModel(BaseModel):
    model_config = {"alias_generator": to_camel, "populate_by_name": True}


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(CamelModel):
    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = ""

    def to_domain(self) -> Address:
        return Address(
            street=self.street,
            city=self.city,
            state=self.state,
            zip_code=self.zip_code,
            country=self.country,
        )

    @classmethod
    def from_domain(cls, address: Address) -> "AddressSchema":
        return cls(**address.to_dict())


class OrderItemSchema(CamelModel):
    product_id: str
    product_name: str
    sku: str | None = None
    quantity: int
    unit_price: Decimal
    discount: Decimal | None = None
    tax_amount: Decimal | None = None


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class CreateOrderRequest(CamelModel):
    customer_id: str = ""
    items: list[OrderItemSchema] = []
    shipping_address: AddressSchema | None = None
    billing_address: AddressSchema | None = None
    payment_method: str | None = None
    notes: str | None = None
    discount_amount: Decimal | None = None

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "json_schema_extra": {
            "examples": [
                {
                    "customerId": "cust-001",
                    "items": [
                        {
                            "productId": "prod-001",
                            "productName": "Black T-Shirt (M)",
                            "sku": "TSHIRT-BLK-M",
                            "quantity": 2,
                            "unitPrice": "25.00",
                        }
                    ],
                    "shippingAddress": {
                        "street": "123 Main St",
                        "city": "Springfield",
                        "state": "IL",
                        "zipCode": "62701",
                        "country": "US",
                    },
                    "paymentMethod": "CARD",
                }
            ]
        },
    }


class ConfirmOrderRequest(CamelModel):
    transaction_id: str = ""


class CancelOrderRequest(CamelModel):
    reason: str = ""


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class OrderItemResponse(CamelModel):
    product_id: str
    product_name: str
    sku: str | None = None
    quantity: int
    unit_price: Decimal
    discount: Decimal
    tax_amount: Decimal
    total_price: Decimal

    @classmethod
    def from_domain(cls, item: OrderItem) -> "OrderItemResponse":
        return cls(
            product_id=item.product_id,
            product_name=item.product_name,
            sku=item.sku,
            quantity=item.quantity,
            unit_price=item.unit_price,
            discount=item.discount,
            tax_amount=item.tax_amount,
            total_price=item.total_price,
        )


class OrderResponse(CamelModel):
    id: int
    order_number: str
    customer_id: str
    status: str
    items: list[OrderItemResponse]
    subtotal: Decimal
    tax_amount: Decimal
    shipping_cost: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    shipping_address: AddressSchema
    billing_address: AddressSchema
    payment_method: str | None = None
    payment_transaction_id: str | None = None
    notes: str | None = None
    confirmed_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    created_at: datetime
    updated_at: datetime
    version: int

    @classmethod
    def from_domain(cls, order: Order) -> "OrderResponse":
        return cls(
            id=order.id,
            order_number=order.order_number,
            customer_id=order.customer_id,
            status=order.status.value,
            items=[OrderItemResponse.from_domain(item) for item in order.items],
            subtotal=order.subtotal,
            tax_amount=order.tax_amount,
            shipping_cost=order.shipping_cost,
            discount_amount=order.discount_amount,
            total_amount=order.total_amount,
            shipping_address=AddressSchema.from_domain(order.shipping_address),
            billing_address=AddressSchema.from_domain(order.billing_address),
            payment_method=order.payment_method,
            payment_transaction_id=order.payment_transaction_id,
            notes=order.notes,
            confirmed_at=order.confirmed_at,
            shipped_at=order.shipped_at,
            delivered_at=order.delivered_at,
            cancelled_at=order.cancelled_at,
            cancellation_reason=order.cancellation_reason,
            created_at=order.created_at,
            updated_at=order.updated_at,
            version=order.version,
        )


class OrderPageResponse(CamelModel):
    content: list[OrderResponse]
    page: int
    size: int
    total_elements: int
    total_pages: int


# ---------------------------------------------------------------------------
# Customer statistics
# ---------------------------------------------------------------------------
class CustomerSpendCategoryResponse(CamelModel):
    customer_id: str
    spend_category: str
    category_description: str
    highest_transaction_amount: Decimal
    total_transactions: int

    @classmethod
    def from_domain(cls, stats: CustomerSpendCategory) -> "CustomerSpendCategoryResponse":
        return cls(
            customer_id=stats.customer_id,
            spend_category=stats.spend_category.value,
            category_description=stats.spend_category.description,
            highest_transaction_amount=stats.highest_transaction_amount,
            total_transactions=stats.total_transactions,
        )


class CustomerVolumeCategoryResponse(CamelModel):
    customer_id: str
    volume_category: str
    category_description: str
    total_order_value: Decimal
    total_orders: int

    @classmethod
    def from_domain(cls, stats: CustomerVolumeCategory) -> "CustomerVolumeCategoryResponse":
        return cls(
            customer_id=stats.customer_id,
            volume_category=stats.volume_category.value,
            category_description=stats.volume_category.description,
            total_order_value=stats.total_order_value,
            total_orders=stats.total_orders,
        )


class CustomerTotalValueResponse(CamelModel):
    customer_id: str
    total_value: Decimal
    order_count: int
    average_order_value: Decimal

    @classmethod
    def from_domain(cls, stats: CustomerTotalValue) -> "CustomerTotalValueResponse":
        return cls(
            customer_id=stats.customer_id,
            total_value=stats.total_value,
            order_count=stats.order_count,
            average_order_value=stats.average_order_value,
        )
