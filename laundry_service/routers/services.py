import re
import uuid
import logging
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends

from laundry_service.auth import admin_required
from laundry_service.database import database, row_to_dict
from laundry_service.errors import Conflict, NotFound
from laundry_service.models import services
from laundry_service.schemas import Service, ServiceCreate, ServiceUpdate, AuthUser

router = APIRouter(prefix="/services", tags=["services"])
logger = logging.getLogger("laundry-service.services")


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or str(uuid.uuid4())


@router.get("", response_model=List[Service])
async def list_services():
    rows = await database.fetch_all(
        services.select().where(services.c.available.is_(True)).order_by(services.c.price_per_unit.asc())
    )
    return [row_to_dict(services, r) for r in rows]


@router.post("", response_model=Service, status_code=201)
async def create_service(body: ServiceCreate, admin: AuthUser = Depends(admin_required)):
    service_id = body.id or slugify(body.name)
    if await database.fetch_one(services.select().where(services.c.id == service_id)):
        raise Conflict(f"Service {service_id} already exists")

    now = datetime.utcnow()
    values = {**body.model_dump(), "id": service_id, "created_at": now, "updated_at": now}
    await database.execute(services.insert().values(**values))
    logger.info(f"[TRACE {admin.trace_id}] 🧺 Service {service_id} created ({body.price_per_unit}/unit)")
    return values


@router.patch("/{service_id}", response_model=Service)
async def update_service(service_id: str, body: ServiceUpdate, admin: AuthUser = Depends(admin_required)):
    existing = await database.fetch_one(services.select().where(services.c.id == service_id))
    if not existing:
        raise NotFound("Service not found")

    values = body.model_dump(exclude_unset=True)
    values["updated_at"] = datetime.utcnow()
    await database.execute(services.update().where(services.c.id == service_id).values(**values))
    logger.info(f"[TRACE {admin.trace_id}] 🧺 Service {service_id} updated: {sorted(values)}")

    row = await database.fetch_one(services.select().where(services.c.id == service_id))
    return row_to_dict(services, row)
