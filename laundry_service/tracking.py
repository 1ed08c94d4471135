import uuid
import logging
from datetime import datetime
from typing import Optional

from laundry_service.auth import can_read_order
from laundry_service.database import database, row_to_dict
from laundry_service.errors import NotFound, AccessDenied, Conflict, ValidationFailed
from laundry_service.models import trackings, tracking_steps, orders, OrderStatus, StepStatus, TrackingStep
from laundry_service.schemas import AuthUser, TrackingUpdate

logger = logging.getLogger("laundry-service.tracking")

TIMELINE = list(TrackingStep)

PRE_COMPLETED = (TrackingStep.order_placed, TrackingStep.pickup_scheduled)

PENDING_DESCRIPTIONS = {
    TrackingStep.order_placed: "Order has been placed",
    TrackingStep.pickup_scheduled: "Pickup has been scheduled",
    TrackingStep.items_collected: "Items will be collected from your location",
    TrackingStep.in_processing: "Your laundry is being processed",
    TrackingStep.ready_for_delivery: "Order is ready for delivery",
    TrackingStep.delivered: "Order has been delivered",
}

COMPLETED_DESCRIPTIONS = {
    TrackingStep.items_collected: "Items have been collected",
    TrackingStep.in_processing: "Your laundry is being processed",
    TrackingStep.ready_for_delivery: "Order is ready for delivery",
    TrackingStep.delivered: "Order has been delivered",
}

# order status -> the step it completes
STATUS_STEPS = {
    OrderStatus.picked_up: TrackingStep.items_collected,
    OrderStatus.in_progress: TrackingStep.in_processing,
    OrderStatus.ready_for_delivery: TrackingStep.ready_for_delivery,
    OrderStatus.delivered: TrackingStep.delivered,
}


async def create_for_order(order_id: str, now: Optional[datetime] = None) -> str:
    """Seed the six-step timeline for a new order. Run inside the order's transaction."""
    now = now or datetime.utcnow()
    tracking_id = str(uuid.uuid4())

    await database.execute(
        trackings.insert().values(
            id=tracking_id,
            order_id=order_id,
            current_step=PRE_COMPLETED[-1].value,
            created_at=now,
            updated_at=now,
        )
    )
    for position, step in enumerate(TIMELINE):
        done = step in PRE_COMPLETED
        await database.execute(
            tracking_steps.insert().values(
                id=str(uuid.uuid4()),
                order_id=order_id,
                position=position,
                name=step.value,
                status=StepStatus.completed.value if done else StepStatus.pending.value,
                completed=done,
                timestamp=now if done else None,
                description=PENDING_DESCRIPTIONS[step],
            )
        )
    return tracking_id


async def load_tracking(order_id: str) -> Optional[dict]:
    row = await database.fetch_one(trackings.select().where(trackings.c.order_id == order_id))
    tracking = row_to_dict(trackings, row)
    if tracking is None:
        return None

    step_rows = await database.fetch_all(
        tracking_steps.select()
        .where(tracking_steps.c.order_id == order_id)
        .order_by(tracking_steps.c.position.asc())
    )
    tracking["steps"] = [
        {
            "name": r["name"],
            "status": r["status"],
            "completed": r["completed"],
            "timestamp": r["timestamp"],
            "description": r["description"],
        }
        for r in step_rows
    ]
    return tracking


async def advance_step(
    order_id: str,
    step: TrackingStep,
    description: Optional[str] = None,
    now: Optional[datetime] = None,
) -> bool:
    """
    Mark a step completed and make it the current step.

    A timeline without that step is left untouched: returns False instead of
    raising, so a status change never fails on a missing timeline.
    """
    now = now or datetime.utcnow()
    row = await database.fetch_one(
        tracking_steps.select().where(
            (tracking_steps.c.order_id == order_id) & (tracking_steps.c.name == step.value)
        )
    )
    if not row:
        logger.warning(f"[Tracking] step '{step.value}' not found for order {order_id}, skipping")
        return False

    values = {"completed": True, "status": StepStatus.completed.value, "timestamp": now}
    if description is not None:
        values["description"] = description
    await database.execute(tracking_steps.update().where(tracking_steps.c.id == row["id"]).values(**values))
    await database.execute(
        trackings.update()
        .where(trackings.c.order_id == order_id)
        .values(current_step=step.value, updated_at=now)
    )
    return True


async def advance_to_status(order_id: str, status: OrderStatus, now: Optional[datetime] = None) -> Optional[TrackingStep]:
    """Complete the step a status maps to, plus any earlier step still open."""
    target = STATUS_STEPS.get(status)
    if target is None:
        return None

    now = now or datetime.utcnow()
    tracking = await load_tracking(order_id)
    if tracking is None:
        logger.warning(f"[Tracking] no timeline for order {order_id}, skipping {status.value}")
        return None

    completed = {s["name"] for s in tracking["steps"] if s["completed"]}
    for step in TIMELINE[: TIMELINE.index(target) + 1]:
        if step.value in completed:
            continue
        await advance_step(order_id, step, COMPLETED_DESCRIPTIONS.get(step), now)
    return target


async def get_tracking(order_id: str, user: AuthUser) -> dict:
    tracking = await load_tracking(order_id)
    if tracking is None:
        raise NotFound("Tracking not found")

    order = row_to_dict(orders, await database.fetch_one(orders.select().where(orders.c.id == order_id)))
    if order is None or not await can_read_order(order, user):
        raise AccessDenied("Access denied")
    return tracking


async def update_step(order_id: str, body: TrackingUpdate, user: AuthUser) -> dict:
    row = await database.fetch_one(
        tracking_steps.select().where(
            (tracking_steps.c.order_id == order_id) & (tracking_steps.c.name == body.step.value)
        )
    )
    if not row:
        raise NotFound("Tracking not found")

    was_completed = row["completed"]
    if body.completed is not None:
        completed = body.completed
    elif body.status is not None:
        completed = body.status == StepStatus.completed
    else:
        completed = was_completed

    if was_completed and not completed:
        raise Conflict("Completed steps cannot be reopened")

    status = body.status.value if body.status is not None else row["status"]
    if completed:
        status = StepStatus.completed.value
    elif status == StepStatus.completed.value:
        raise ValidationFailed("A step with status 'completed' must be completed")

    now = datetime.utcnow()
    values = {"status": status, "completed": completed, "timestamp": now}
    if body.description is not None:
        values["description"] = body.description

    async with database.transaction():
        await database.execute(tracking_steps.update().where(tracking_steps.c.id == row["id"]).values(**values))
        tracking_values = {"updated_at": now}
        if completed:
            tracking_values["current_step"] = body.step.value
        await database.execute(
            trackings.update().where(trackings.c.order_id == order_id).values(**tracking_values)
        )

    logger.info(f"[TRACE {user.trace_id}] 🧭 {body.step.value} on order {order_id} → {status} by {user.id}")
    return await load_tracking(order_id)
