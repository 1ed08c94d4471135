from datetime import datetime, timedelta
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import select, func

from laundry_service.auth import admin_required
from laundry_service.database import database
from laundry_service.models import orders, drivers, OrderStatus, DriverStatus
from laundry_service.schemas import AuthUser, QuickStat

router = APIRouter(prefix="/statistics", tags=["statistics"])


@router.get("/quick-stats", response_model=List[QuickStat])
async def quick_stats(admin: AuthUser = Depends(admin_required)):
    start_of_today = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    end_of_today = start_of_today + timedelta(days=1)

    total_orders = await database.fetch_val(select(func.count()).select_from(orders))
    pending_pickups = await database.fetch_val(
        select(func.count()).select_from(orders).where(orders.c.status == OrderStatus.pending.value)
    )
    active_drivers = await database.fetch_val(
        select(func.count())
        .select_from(drivers)
        .where((drivers.c.status == DriverStatus.active.value) & (drivers.c.is_active.is_(True)))
    )
    revenue_today = await database.fetch_val(
        select(func.coalesce(func.sum(orders.c.total_price), 0.0)).where(
            (orders.c.created_at >= start_of_today)
            & (orders.c.created_at < end_of_today)
            & (orders.c.status != OrderStatus.cancelled.value)
        )
    )

    return [
        {"label": "Total Orders", "value": str(total_orders or 0), "icon": "cart"},
        {"label": "Pending Pickups", "value": str(pending_pickups or 0), "icon": "time"},
        {"label": "Active Drivers", "value": str(active_drivers or 0), "icon": "car"},
        {"label": "Revenue Today", "value": f"${float(revenue_today or 0):.2f}", "icon": "cash"},
    ]
