from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from laundry_service import orders as order_store
from laundry_service import qr
from laundry_service.auth import get_current_user, admin_required, driver_required
from laundry_service.errors import AccessDenied
from laundry_service.events import NotificationSink, get_notifier
from laundry_service.models import OrderStatus, Role
from laundry_service.schemas import (
    AuthUser,
    Order,
    OrderCreate,
    OrderCreated,
    OrderDetail,
    OrderPage,
    OrderQr,
    OrderStatusSummary,
    OrderStatusUpdate,
    QRVerifyRequest,
    QRVerifyResponse,
)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderCreated, status_code=201)
async def create_order(
    body: OrderCreate,
    user: AuthUser = Depends(get_current_user),
    sink: NotificationSink = Depends(get_notifier),
):
    if user.role != Role.customer:
        raise AccessDenied("Only customers can schedule pickups")
    return await order_store.create_order(body, user, sink)


@router.get("", response_model=OrderPage)
async def list_my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    user: AuthUser = Depends(get_current_user),
):
    return await order_store.list_orders(user, page=page, limit=limit, search=search, status=status)


@router.get("/all", response_model=OrderPage)
async def list_all_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    driver_id: Optional[str] = Query(None, alias="driverId"),
    date_from: Optional[datetime] = Query(None, alias="dateFrom"),
    date_to: Optional[datetime] = Query(None, alias="dateTo"),
    admin: AuthUser = Depends(admin_required),
):
    return await order_store.list_orders(
        admin,
        all_orders=True,
        page=page,
        limit=limit,
        search=search,
        status=status,
        driver_id=driver_id,
        date_from=date_from,
        date_to=date_to,
    )


@router.post("/verify-qr", response_model=QRVerifyResponse)
async def verify_qr(
    body: QRVerifyRequest,
    driver: AuthUser = Depends(driver_required),
    sink: NotificationSink = Depends(get_notifier),
):
    return await qr.verify(body.qr_data.strip(), driver, sink)


@router.get("/status/{order_number}", response_model=OrderStatusSummary)
async def get_order_status(order_number: str, user: AuthUser = Depends(get_current_user)):
    return await order_store.get_order_status(order_number, user)


@router.get("/{order_id}", response_model=OrderDetail)
async def get_order(order_id: str, user: AuthUser = Depends(get_current_user)):
    return await order_store.get_order_detail(order_id, user)


@router.get("/{order_id}/qr", response_model=OrderQr)
async def get_order_qr(order_id: str, user: AuthUser = Depends(get_current_user)):
    return await order_store.get_order_qr(order_id, user)


@router.patch("/{order_id}/status", response_model=Order)
async def update_order_status(
    order_id: str,
    body: OrderStatusUpdate,
    user: AuthUser = Depends(get_current_user),
    sink: NotificationSink = Depends(get_notifier),
):
    return await order_store.update_order_status(order_id, body, user, sink)
