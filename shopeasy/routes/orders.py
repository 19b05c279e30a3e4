from fastapi import APIRouter, Depends, Query, status

from shopeasy.deps import CurrentUser, get_app_settings, get_current_user, get_db, require_admin
from shopeasy.schemas import (
    CheckoutRequest,
    OrderListResponse,
    OrderOut,
    OrderPageResponse,
    OrderResponse,
    OrderStatusUpdate,
    PaymentConfirmation,
)
from shopeasy.services import orders as order_service
from shopeasy.services.catalog import page_count
from shopeasy.services.checkout import checkout
from shopeasy.shared.utils import Settings

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    data: CheckoutRequest,
    user: CurrentUser = Depends(get_current_user),
    db=Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    order = await checkout(db, user.id, data.shipping_address, data.payment_method, settings)
    return OrderResponse(message="Order created", order=OrderOut.from_doc(order, settings.IMAGE_BASE_URL))


@router.get("", response_model=OrderListResponse)
async def my_orders(
    user: CurrentUser = Depends(get_current_user),
    db=Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    docs = await order_service.list_user_orders(db, user.id)
    return OrderListResponse(orders=[OrderOut.from_doc(doc, settings.IMAGE_BASE_URL) for doc in docs])


# Declared before /{order_id} so "admin" is not taken for an id
@router.get("/admin", response_model=OrderPageResponse)
async def all_orders(
    page: int = Query(1, ge=1),
    _: CurrentUser = Depends(require_admin),
    db=Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    docs, count = await order_service.list_all_orders(db, page, settings.PAGE_SIZE)
    return OrderPageResponse(
        orders=[OrderOut.from_doc(doc, settings.IMAGE_BASE_URL) for doc in docs],
        page=page,
        pages=page_count(count, settings.PAGE_SIZE),
        count=count,
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def read_order(
    order_id: str,
    user: CurrentUser = Depends(get_current_user),
    db=Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    order = await order_service.get_order(db, order_id, user.id, user.is_admin)
    return OrderResponse(order=OrderOut.from_doc(order, settings.IMAGE_BASE_URL))


@router.put("/{order_id}/pay", response_model=OrderResponse)
async def pay_order(
    order_id: str,
    payment: PaymentConfirmation,
    user: CurrentUser = Depends(get_current_user),
    db=Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    order = await order_service.get_order(db, order_id, user.id, user.is_admin)
    order = await order_service.mark_paid(db, order, payment)
    return OrderResponse(message="Order paid", order=OrderOut.from_doc(order, settings.IMAGE_BASE_URL))


@router.put("/{order_id}/status", response_model=OrderResponse)
async def update_status(
    order_id: str,
    update: OrderStatusUpdate,
    _: CurrentUser = Depends(require_admin),
    db=Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    order = await order_service.advance_status(db, order_id, update.status)
    return OrderResponse(message="Order status updated", order=OrderOut.from_doc(order, settings.IMAGE_BASE_URL))
