"""FastAPI routes for the Ordering domain.

Handlers are plain ``def`` functions so FastAPI runs them in its threadpool:
the lifecycle service and its stores are blocking. Every ``Err`` from the
service becomes an ``HTTPException`` carrying the error's status code and
``{"code", "message"}`` detail.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ordering.api.schemas import (
    CancelOrderRequest,
    ConfirmOrderRequest,
    CreateOrderRequest,
    CustomerSpendCategoryResponse,
    CustomerTotalValueResponse,
    CustomerVolumeCategoryResponse,
    OrderPageResponse,
    OrderResponse,
)
from ordering.errors import Result, UnwrapError
from ordering.order.service import OrderLifecycleService

router = APIRouter(prefix="/orders", tags=["orders"])
stats_router = APIRouter(prefix="/customers/stats", tags=["customer-stats"])


def get_order_service(request: Request) -> OrderLifecycleService:
    return request.app.state.order_service


def _unwrap(result: Result):
    try:
        return result.unwrap()
    except UnwrapError as exc:
        raise HTTPException(status_code=exc.error.status_code, detail=exc.error.to_dict()) from None


def _page_response(page) -> OrderPageResponse:
    return OrderPageResponse(
        content=[OrderResponse.from_domain(order) for order in page.items],
        page=page.page,
        size=page.size,
        total_elements=page.total_elements,
        total_pages=page.total_pages,
    )


@router.post("", status_code=201, response_model=OrderResponse)
def create_order(
    body: CreateOrderRequest,
    service: OrderLifecycleService = Depends(get_order_service),
) -> OrderResponse:
    result = service.create_order(
        customer_id=body.customer_id,
        items=[item.model_dump() for item in body.items],
        shipping_address=body.shipping_address.to_domain() if body.shipping_address else None,
        billing_address=body.billing_address.to_domain() if body.billing_address else None,
        payment_method=body.payment_method,
        notes=body.notes,
        discount_amount=body.discount_amount,
    )
    return OrderResponse.from_domain(_unwrap(result))


@router.get("/number/{order_number}", response_model=OrderResponse)
def get_order_by_number(
    order_number: str,
    service: OrderLifecycleService = Depends(get_order_service),
) -> OrderResponse:
    return OrderResponse.from_domain(_unwrap(service.get_order_by_number(order_number)))


@router.get("/customer/{customer_id}", response_model=OrderPageResponse)
def get_customer_orders(
    customer_id: str,
    page: int = 0,
    size: int | None = None,
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_dir: str = Query("desc", alias="sortDir"),
    service: OrderLifecycleService = Depends(get_order_service),
) -> OrderPageResponse:
    result = service.get_customer_orders(customer_id, page=page, size=size, sort_by=sort_by, sort_dir=sort_dir)
    return _page_response(_unwrap(result))


@router.get("/status/{status}", response_model=OrderPageResponse)
def get_orders_by_status(
    status: str,
    page: int = 0,
    size: int | None = None,
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_dir: str = Query("desc", alias="sortDir"),
    service: OrderLifecycleService = Depends(get_order_service),
) -> OrderPageResponse:
    result = service.get_orders_by_status(status, page=page, size=size, sort_by=sort_by, sort_dir=sort_dir)
    return _page_response(_unwrap(result))


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: int,
    service: OrderLifecycleService = Depends(get_order_service),
) -> OrderResponse:
    return OrderResponse.from_domain(_unwrap(service.get_order(order_id)))


@router.post("/{order_id}/confirm", response_model=OrderResponse)
def confirm_order(
    order_id: int,
    body: ConfirmOrderRequest,
    service: OrderLifecycleService = Depends(get_order_service),
) -> OrderResponse:
    return OrderResponse.from_domain(_unwrap(service.confirm_order(order_id, body.transaction_id)))


@router.post("/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(
    order_id: int,
    body: CancelOrderRequest,
    service: OrderLifecycleService = Depends(get_order_service),
) -> OrderResponse:
    return OrderResponse.from_domain(_unwrap(service.cancel_order(order_id, body.reason)))


@router.post("/{order_id}/process", response_model=OrderResponse)
def start_processing(
    order_id: int,
    service: OrderLifecycleService = Depends(get_order_service),
) -> OrderResponse:
    return OrderResponse.from_domain(_unwrap(service.start_processing(order_id)))


@router.post("/{order_id}/ship", response_model=OrderResponse)
def ship_order(
    order_id: int,
    service: OrderLifecycleService = Depends(get_order_service),
) -> OrderResponse:
    return OrderResponse.from_domain(_unwrap(service.ship_order(order_id)))


@router.post("/{order_id}/deliver", response_model=OrderResponse)
def deliver_order(
    order_id: int,
    service: OrderLifecycleService = Depends(get_order_service),
) -> OrderResponse:
    return OrderResponse.from_domain(_unwrap(service.deliver_order(order_id)))


# ---------------------------------------------------------------------------
# Customer statistics
# ---------------------------------------------------------------------------
@stats_router.get("/spend-category", response_model=list[CustomerSpendCategoryResponse])
def get_customer_spend_categories(
    service: OrderLifecycleService = Depends(get_order_service),
) -> list[CustomerSpendCategoryResponse]:
    stats = _unwrap(service.get_customer_spend_categories())
    return [CustomerSpendCategoryResponse.from_domain(entry) for entry in stats]


@stats_router.get("/volume-category", response_model=list[CustomerVolumeCategoryResponse])
def get_customer_volume_categories(
    service: OrderLifecycleService = Depends(get_order_service),
) -> list[CustomerVolumeCategoryResponse]:
    stats = _unwrap(service.get_customer_volume_categories())
    return [CustomerVolumeCategoryResponse.from_domain(entry) for entry in stats]


@stats_router.get("/total-value", response_model=list[CustomerTotalValueResponse])
def get_customer_total_values(
    service: OrderLifecycleService = Depends(get_order_service),
) -> list[CustomerTotalValueResponse]:
    stats = _unwrap(service.get_customer_total_values())
    return [CustomerTotalValueResponse.from_domain(entry) for entry in stats]
