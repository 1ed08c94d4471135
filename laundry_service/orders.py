import json
import uuid
import secrets
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select, func, and_, or_
from starlette.concurrency import run_in_threadpool

from laundry_service import qr, tracking
from laundry_service.auth import can_read_order
from laundry_service.database import database, row_to_dict, paginate, like_pattern, LIKE_ESCAPE
from laundry_service.errors import NotFound, AccessDenied, Conflict
from laundry_service.events import NotificationSink, notify_order_created, notify_order_updated
from laundry_service.metrics import ORDERS_CREATED, ORDER_STATUS_UPDATES
from laundry_service.models import orders, users, drivers, OrderStatus, Role
from laundry_service.pricing import resolve_line_items
from laundry_service.schemas import AuthUser, OrderCreate, OrderStatusUpdate

logger = logging.getLogger("laundry-service.orders")

# Forward-only lifecycle; cancelled is a side exit from any non-terminal state.
STATUS_FLOW = [
    OrderStatus.pending,
    OrderStatus.confirmed,
    OrderStatus.picked_up,
    OrderStatus.in_progress,
    OrderStatus.ready_for_delivery,
    OrderStatus.delivered,
]
TERMINAL = {OrderStatus.delivered, OrderStatus.cancelled}

STATUS_PROGRESS = {
    OrderStatus.pending: 25,
    OrderStatus.confirmed: 35,
    OrderStatus.picked_up: 50,
    OrderStatus.in_progress: 70,
    OrderStatus.ready_for_delivery: 90,
    OrderStatus.delivered: 100,
}

INITIAL_PROGRESS = STATUS_PROGRESS[OrderStatus.pending]
DELIVERY_HOUR = 14
ESTIMATED_DELIVERY = "Tomorrow, 2:00 PM"


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    if current == target:
        return True
    if current in TERMINAL:
        return False
    if target == OrderStatus.cancelled:
        return True
    return STATUS_FLOW.index(target) > STATUS_FLOW.index(current)


def format_order(row: dict) -> dict:
    """Decode the stored JSON columns and fold the location columns back together."""
    data = dict(row)
    for key in ("line_items", "items"):
        if isinstance(data.get(key), str):
            data[key] = json.loads(data[key])
    data["location"] = {
        "address": data.pop("location_address"),
        "lat": data.pop("location_lat"),
        "lon": data.pop("location_lon"),
    }
    data.pop("qr_token", None)
    return data


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


async def generate_order_number(attempts: int = 5) -> str:
    for _ in range(attempts):
        stamp = int(datetime.utcnow().timestamp() * 1000) % 1_000_000
        candidate = f"ORD-{stamp:06d}{secrets.randbelow(1000):03d}"
        taken = await database.fetch_one(orders.select().where(orders.c.order_number == candidate))
        if not taken:
            return candidate
    raise RuntimeError("Could not allocate a unique order number")


async def _fetch_order(order_id: str) -> Optional[dict]:
    row = await database.fetch_one(orders.select().where(orders.c.id == order_id))
    return row_to_dict(orders, row)


# ------------------------- CREATE -------------------------
async def create_order(body: OrderCreate, customer: AuthUser, sink: NotificationSink) -> dict:
    trace_id = customer.trace_id
    line_items, total_price = await resolve_line_items(body.services)

    order_id = str(uuid.uuid4())
    order_number = await generate_order_number()
    qr_token = qr.generate_token(order_number)

    now = datetime.utcnow()
    pickup_date = _naive_utc(body.pickup_date)
    delivery_date = (pickup_date + timedelta(days=1)).replace(
        hour=DELIVERY_HOUR, minute=0, second=0, microsecond=0
    )

    values = {
        "id": order_id,
        "order_number": order_number,
        "customer_id": customer.id,
        "line_items": json.dumps(line_items),
        "total_price": total_price,
        "status": OrderStatus.pending.value,
        "progress": INITIAL_PROGRESS,
        "pickup_date": pickup_date,
        "pickup_time_slot": body.pickup_time_slot,
        "delivery_date": delivery_date,
        "estimated_delivery": ESTIMATED_DELIVERY,
        "location_address": body.location.address,
        "location_lat": body.location.lat,
        "location_lon": body.location.lon,
        "special_instructions": body.special_instructions,
        "items": json.dumps([item.model_dump() for item in body.items]),
        "qr_token": qr_token,
        "qr_token_verified": False,
        "qr_verified_at": None,
        "qr_verified_by": None,
        "driver_id": None,
        "version": 1,
        "created_at": now,
        "updated_at": now,
    }

    async with database.transaction():
        await database.execute(orders.insert().values(**values))
        await tracking.create_for_order(order_id, now)

    ORDERS_CREATED.inc()
    logger.info(f"[TRACE {trace_id}] 📦 Order {order_number} created by {customer.id} (total {total_price})")

    await notify_order_created(sink, values, trace_id=trace_id)

    created = format_order(values)
    created["qr_code_data"] = qr_token
    created["qr_code_image"] = await run_in_threadpool(qr.render_data_url, qr_token, order_number)
    return created


# ------------------------- READ -------------------------
async def list_orders(
    user: AuthUser,
    all_orders: bool = False,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    driver_id: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> dict:
    """Customers only ever see their own orders; all_orders is for the admin listing."""
    if all_orders and user.role != Role.admin:
        raise AccessDenied("Access denied")

    joined = orders.join(users, orders.c.customer_id == users.c.id)
    conditions = []
    if not all_orders:
        conditions.append(orders.c.customer_id == user.id)
    if search:
        like = like_pattern(search.strip())
        conditions.append(
            or_(
                orders.c.order_number.ilike(like, escape=LIKE_ESCAPE),
                users.c.name.ilike(like, escape=LIKE_ESCAPE),
                users.c.email.ilike(like, escape=LIKE_ESCAPE),
                orders.c.location_address.ilike(like, escape=LIKE_ESCAPE),
            )
        )
    if status is not None:
        conditions.append(orders.c.status == status.value)
    if driver_id:
        conditions.append(orders.c.driver_id == driver_id)
    if date_from is not None:
        conditions.append(orders.c.created_at >= _naive_utc(date_from))
    if date_to is not None:
        conditions.append(orders.c.created_at <= _naive_utc(date_to))

    count_query = select(func.count()).select_from(joined)
    query = select(orders).select_from(joined)
    if conditions:
        count_query = count_query.where(and_(*conditions))
        query = query.where(and_(*conditions))

    total = await database.fetch_val(count_query)
    rows = await database.fetch_all(
        query.order_by(orders.c.created_at.desc()).limit(limit).offset((page - 1) * limit)
    )
    return {
        "orders": [format_order(row_to_dict(orders, row)) for row in rows],
        "pagination": paginate(total or 0, page, limit),
    }


async def get_order(order_id: str, user: AuthUser) -> dict:
    order = await _fetch_order(order_id)
    if order is None or not await can_read_order(order, user):
        raise NotFound("Order not found")
    return format_order(order)


async def get_order_detail(order_id: str, user: AuthUser) -> dict:
    order = await get_order(order_id, user)
    return {"order": order, "tracking": await tracking.load_tracking(order_id)}


async def get_order_qr(order_id: str, user: AuthUser) -> dict:
    order = await _fetch_order(order_id)
    if order is None or (user.role != Role.admin and order["customer_id"] != user.id):
        raise NotFound("Order not found")
    image = await run_in_threadpool(qr.render_data_url, order["qr_token"])
    return {"qr_code_data": order["qr_token"], "qr_code_image": image}


async def get_order_status(order_number: str, user: AuthUser) -> dict:
    row = await database.fetch_one(orders.select().where(orders.c.order_number == order_number))
    order = row_to_dict(orders, row)
    if order is None or not await can_read_order(order, user):
        raise NotFound("Order not found")
    return {
        "order_number": order["order_number"],
        "status": order["status"],
        "progress": order["progress"],
        "pickup_verified": order["qr_token_verified"],
        "verified_at": order["qr_verified_at"],
        "created_at": order["created_at"],
    }


# ------------------------- UPDATE -------------------------
async def update_order_status(
    order_id: str,
    body: OrderStatusUpdate,
    user: AuthUser,
    sink: NotificationSink,
) -> dict:
    trace_id = user.trace_id
    order = await _fetch_order(order_id)
    if order is None:
        raise NotFound("Order not found")

    if user.role == Role.customer:
        if order["customer_id"] != user.id:
            raise NotFound("Order not found")
        if body.status != OrderStatus.cancelled or body.progress is not None or body.driver_id is not None:
            raise AccessDenied("Customers can only cancel their own orders")

    current = OrderStatus(order["status"])
    changes = {}

    if body.status is not None and body.status != current:
        if not can_transition(current, body.status):
            raise Conflict(f"Invalid status transition from {current.value} to {body.status.value}")
        changes["status"] = body.status.value
        if body.progress is None and body.status in STATUS_PROGRESS:
            changes["progress"] = STATUS_PROGRESS[body.status]

    if body.progress is not None and body.progress != order["progress"]:
        changes["progress"] = body.progress

    if body.driver_id is not None and body.driver_id != order["driver_id"]:
        if current in TERMINAL:
            raise Conflict(f"Cannot assign a driver to a {current.value} order")
        driver = await database.fetch_one(
            drivers.select().where((drivers.c.id == body.driver_id) & (drivers.c.is_active.is_(True)))
        )
        if not driver:
            raise NotFound("Driver not found")
        changes["driver_id"] = body.driver_id

    if not changes:
        return format_order(order)

    now = datetime.utcnow()
    async with database.transaction():
        written = await database.fetch_one(
            orders.update()
            .where((orders.c.id == order_id) & (orders.c.version == order["version"]))
            .values(**changes, version=order["version"] + 1, updated_at=now)
            .returning(orders.c.id)
        )
        if written is None:
            raise Conflict("Order was modified by another request, reload and retry")

        if "status" in changes:
            new_status = OrderStatus(changes["status"])
            await tracking.advance_to_status(order_id, new_status, now)

            assigned = changes.get("driver_id", order["driver_id"])
            if new_status == OrderStatus.delivered and assigned:
                await database.execute(
                    drivers.update()
                    .where(drivers.c.id == assigned)
                    .values(delivery_count=drivers.c.delivery_count + 1, updated_at=now)
                )

    updated = await _fetch_order(order_id)
    if "status" in changes:
        ORDER_STATUS_UPDATES.labels(status=changes["status"]).inc()
    logger.info(f"[TRACE {trace_id}] ✏️ Order {updated['order_number']} updated by {user.id}: {changes}")

    await notify_order_updated(sink, updated, changes, previous_driver_id=order["driver_id"], trace_id=trace_id)
    return format_order(updated)
