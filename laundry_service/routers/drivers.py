import uuid
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, func, and_, or_

from laundry_service.auth import admin_required
from laundry_service.database import database, row_to_dict, paginate, like_pattern, LIKE_ESCAPE
from laundry_service.errors import Conflict, NotFound, ValidationFailed
from laundry_service.models import drivers, users, DriverStatus, Role
from laundry_service.schemas import (
    AuthUser,
    Driver,
    DriverCreate,
    DriverPage,
    DriverStats,
    DriverStatusUpdate,
    DriverUpdate,
)

router = APIRouter(prefix="/drivers", tags=["drivers"])
logger = logging.getLogger("laundry-service.drivers")

SORT_COLUMNS = {
    "createdAt": drivers.c.created_at,
    "name": drivers.c.name,
    "rating": drivers.c.rating,
    "deliveryCount": drivers.c.delivery_count,
    "status": drivers.c.status,
}


# -------------------------
# Helpers
# -------------------------
def format_driver(row: dict) -> dict:
    data = dict(row)
    data["vehicle"] = {
        "model": data.pop("vehicle_model"),
        "plate": data.pop("vehicle_plate"),
        "color": data.pop("vehicle_color"),
        "year": data.pop("vehicle_year"),
    }
    return data


def vehicle_columns(vehicle) -> dict:
    return {
        "vehicle_model": vehicle.model,
        "vehicle_plate": vehicle.plate,
        "vehicle_color": vehicle.color,
        "vehicle_year": vehicle.year,
    }


async def _load_driver(driver_id: str) -> dict:
    row = await database.fetch_one(
        drivers.select().where((drivers.c.id == driver_id) & (drivers.c.is_active.is_(True)))
    )
    if not row:
        raise NotFound("Driver not found")
    return row_to_dict(drivers, row)


async def _ensure_unique(email=None, phone=None, plate=None, exclude_id: Optional[str] = None):
    clauses = []
    if email:
        clauses.append(drivers.c.email == email)
    if phone:
        clauses.append(drivers.c.phone == phone)
    if plate:
        clauses.append(drivers.c.vehicle_plate == plate)
    if not clauses:
        return

    query = drivers.select().where(or_(*clauses))
    if exclude_id:
        query = query.where(drivers.c.id != exclude_id)
    if await database.fetch_one(query):
        raise Conflict("Driver with this email, phone or license plate already exists")


async def _ensure_driver_account(user_id: Optional[str]):
    if not user_id:
        return
    row = await database.fetch_one(users.select().where(users.c.id == user_id))
    if not row or row["role"] != Role.driver.value:
        raise ValidationFailed("userId must reference an account with the driver role")


# -------------------------
# Endpoints
# -------------------------
@router.get("", response_model=DriverPage)
async def list_drivers(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    status: Optional[str] = None,
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    admin: AuthUser = Depends(admin_required),
):
    if sort_by not in SORT_COLUMNS:
        raise ValidationFailed(f"Cannot sort drivers by {sort_by}")

    conditions = [drivers.c.is_active.is_(True)]
    if search:
        like = like_pattern(search.strip())
        conditions.append(
            or_(
                drivers.c.name.ilike(like, escape=LIKE_ESCAPE),
                drivers.c.email.ilike(like, escape=LIKE_ESCAPE),
                drivers.c.phone.ilike(like, escape=LIKE_ESCAPE),
                drivers.c.vehicle_plate.ilike(like, escape=LIKE_ESCAPE),
                drivers.c.vehicle_model.ilike(like, escape=LIKE_ESCAPE),
            )
        )
    if status and status != "all":
        try:
            conditions.append(drivers.c.status == DriverStatus(status).value)
        except ValueError:
            raise ValidationFailed("Invalid status. Must be active, offline, or on-delivery")

    column = SORT_COLUMNS[sort_by]
    ordering = column.asc() if sort_order == "asc" else column.desc()

    total = await database.fetch_val(select(func.count()).select_from(drivers).where(and_(*conditions)))
    rows = await database.fetch_all(
        drivers.select().where(and_(*conditions)).order_by(ordering).limit(limit).offset((page - 1) * limit)
    )
    return {
        "drivers": [format_driver(row_to_dict(drivers, r)) for r in rows],
        "pagination": paginate(total or 0, page, limit),
    }


@router.get("/stats", response_model=DriverStats)
async def driver_stats(admin: AuthUser = Depends(admin_required)):
    active = drivers.c.is_active.is_(True)
    total_drivers = await database.fetch_val(select(func.count()).select_from(drivers).where(active))
    active_drivers = await database.fetch_val(
        select(func.count()).select_from(drivers).where(active & (drivers.c.status == DriverStatus.active.value))
    )
    total_deliveries = await database.fetch_val(
        select(func.coalesce(func.sum(drivers.c.delivery_count), 0)).where(active)
    )
    return {
        "total_drivers": total_drivers or 0,
        "active_drivers": active_drivers or 0,
        "total_deliveries": total_deliveries or 0,
    }


@router.get("/{driver_id}", response_model=Driver)
async def get_driver(driver_id: str, admin: AuthUser = Depends(admin_required)):
    return format_driver(await _load_driver(driver_id))


@router.post("", response_model=Driver, status_code=201)
async def create_driver(body: DriverCreate, admin: AuthUser = Depends(admin_required)):
    email = body.email.lower()
    await _ensure_unique(email=email, phone=body.phone, plate=body.vehicle.plate)
    await _ensure_driver_account(body.user_id)

    now = datetime.utcnow()
    values = {
        "id": str(uuid.uuid4()),
        "user_id": body.user_id,
        "name": body.name.strip(),
        "email": email,
        "phone": body.phone,
        **vehicle_columns(body.vehicle),
        "status": DriverStatus.active.value,
        "rating": 5.0,
        "delivery_count": 0,
        "is_active": True,
        "created_at": now,
        "updated_at": now,
    }
    await database.execute(drivers.insert().values(**values))
    logger.info(f"[TRACE {admin.trace_id}] 🚚 Driver {values['id']} created ({values['vehicle_plate']})")
    return format_driver(values)


@router.patch("/{driver_id}/status", response_model=Driver)
async def update_driver_status(driver_id: str, body: DriverStatusUpdate, admin: AuthUser = Depends(admin_required)):
    await _load_driver(driver_id)
    await database.execute(
        drivers.update()
        .where(drivers.c.id == driver_id)
        .values(status=body.status.value, updated_at=datetime.utcnow())
    )
    logger.info(f"[TRACE {admin.trace_id}] 🚦 Driver {driver_id} → {body.status.value}")
    return format_driver(await _load_driver(driver_id))


@router.put("/{driver_id}", response_model=Driver)
async def update_driver(driver_id: str, body: DriverUpdate, admin: AuthUser = Depends(admin_required)):
    await _load_driver(driver_id)

    email = body.email.lower() if body.email else None
    await _ensure_unique(
        email=email,
        phone=body.phone,
        plate=body.vehicle.plate if body.vehicle else None,
        exclude_id=driver_id,
    )
    if body.user_id is not None:
        await _ensure_driver_account(body.user_id)

    values = {"updated_at": datetime.utcnow()}
    if body.name is not None:
        values["name"] = body.name.strip()
    if email is not None:
        values["email"] = email
    if body.phone is not None:
        values["phone"] = body.phone
    if body.vehicle is not None:
        values.update(vehicle_columns(body.vehicle))
    if body.rating is not None:
        values["rating"] = body.rating
    if body.user_id is not None:
        values["user_id"] = body.user_id

    await database.execute(drivers.update().where(drivers.c.id == driver_id).values(**values))
    logger.info(f"[TRACE {admin.trace_id}] ✏️ Driver {driver_id} updated: {sorted(values)}")
    return format_driver(await _load_driver(driver_id))


@router.delete("/{driver_id}")
async def delete_driver(driver_id: str, admin: AuthUser = Depends(admin_required)):
    await _load_driver(driver_id)
    await database.execute(
        drivers.update()
        .where(drivers.c.id == driver_id)
        .values(is_active=False, status=DriverStatus.offline.value, updated_at=datetime.utcnow())
    )
    logger.info(f"[TRACE {admin.trace_id}] 🗑️ Driver {driver_id} deactivated by {admin.id}")
    return {"success": True, "message": "Driver deleted successfully"}
