# events.py
import os
import json
import uuid
import logging
from datetime import datetime
from typing import Optional

import aioboto3
from dotenv import load_dotenv
from fastapi import Request

from laundry_service.metrics import NOTIFICATIONS_PUBLISHED
from laundry_service.ws_manager import ConnectionManager

load_dotenv()

logger = logging.getLogger("laundry-service.events")

USE_AWS = os.getenv("USE_AWS", "False").lower() in ("true", "1", "yes")
AWS_REGION = os.getenv("AWS_REGION", "us-east-1")
EVENT_QUEUE_URL = os.getenv("EVENT_QUEUE_URL")

session = aioboto3.Session()

ADMIN_ROOM = "admin-room"

# Event names pushed to socket clients
NEW_ORDER = "new-order"
ORDER_UPDATE = "order-update"
ORDER_STATUS_UPDATED = "order-status-updated"
ORDER_ASSIGNED = "order-assigned"
QR_VERIFIED = "qr-verified"
ORDER_PICKED_UP = "order-picked-up"


def customer_room(customer_id: str) -> str:
    return f"customer-{customer_id}"


def driver_room(driver_id: str) -> str:
    return f"driver-{driver_id}"


def build_envelope(room: str, event_type: str, data: dict, trace_id: Optional[str] = None) -> dict:
    return {
        "type": event_type,
        "event_id": str(uuid.uuid4()),
        "room": room,
        "data": data,
        "trace_id": trace_id,
        "timestamp": datetime.utcnow().isoformat(),
    }


# -------------------------------
# Sinks
# -------------------------------
class NotificationSink:
    """Outbound, best-effort event channel. Implementations must not raise."""

    async def publish(self, room: str, event_type: str, data: dict, trace_id: Optional[str] = None):
        raise NotImplementedError


class NullNotificationSink(NotificationSink):
    async def publish(self, room: str, event_type: str, data: dict, trace_id: Optional[str] = None):
        return None


class RoomNotificationSink(NotificationSink):
    """Pushes events to WebSocket rooms, mirroring them to SQS when AWS is enabled."""

    def __init__(self, manager: ConnectionManager):
        self.manager = manager

    async def publish(self, room: str, event_type: str, data: dict, trace_id: Optional[str] = None):
        envelope = build_envelope(room, event_type, data, trace_id)

        # WS
        try:
            delivered = await self.manager.emit(room, envelope)
            NOTIFICATIONS_PUBLISHED.labels(event_type=event_type).inc()
            logger.info(f"[TRACE {trace_id}] 📣 {event_type} → {room} ({delivered} sockets)")
        except Exception as e:
            logger.warning(f"[WebSocket ERROR] {e}")

        # SQS
        if USE_AWS:
            await forward_to_queue(envelope)


def get_notifier(request: Request) -> NotificationSink:
    """Sink installed on the app at startup; overridden in tests."""
    return request.app.state.notifier


async def forward_to_queue(envelope: dict):
    if not EVENT_QUEUE_URL:
        logger.warning("[WARN] USE_AWS is set but EVENT_QUEUE_URL is missing")
        return
    try:
        async with session.client("sqs", region_name=AWS_REGION) as sqs:
            await sqs.send_message(QueueUrl=EVENT_QUEUE_URL, MessageBody=json.dumps(envelope, default=str))
            logger.info(f"[SQS] {envelope['type']} event_id={envelope['event_id']}")
    except Exception as e:
        logger.error(f"[SQS ERROR] {e}")


async def _publish_safely(sink: NotificationSink, room: str, event_type: str, data: dict, trace_id=None):
    try:
        await sink.publish(room, event_type, data, trace_id=trace_id)
    except Exception as e:
        logger.warning(f"[TRACE {trace_id}] notification {event_type} → {room} dropped: {e}")


# -------------------------------
# Order lifecycle fan-out
# -------------------------------
async def notify_order_created(sink: NotificationSink, order: dict, trace_id: Optional[str] = None):
    data = {
        "order_id": order["id"],
        "order_number": order["order_number"],
        "customer_id": order["customer_id"],
        "total_price": order["total_price"],
        "status": order["status"],
        "pickup_date": order["pickup_date"].isoformat(),
        "pickup_time_slot": order["pickup_time_slot"],
    }
    await _publish_safely(sink, ADMIN_ROOM, NEW_ORDER, data, trace_id)
    await _publish_safely(
        sink,
        customer_room(order["customer_id"]),
        ORDER_UPDATE,
        {**data, "message": f"Order {order['order_number']} has been placed"},
        trace_id,
    )


async def notify_order_updated(
    sink: NotificationSink,
    order: dict,
    changes: dict,
    previous_driver_id: Optional[str] = None,
    trace_id: Optional[str] = None,
):
    data = {
        "order_id": order["id"],
        "order_number": order["order_number"],
        "status": order["status"],
        "progress": order["progress"],
        "driver_id": order["driver_id"],
        "changes": changes,
    }
    await _publish_safely(sink, ADMIN_ROOM, ORDER_STATUS_UPDATED, data, trace_id)
    await _publish_safely(sink, customer_room(order["customer_id"]), ORDER_UPDATE, data, trace_id)

    driver_id = order["driver_id"]
    if driver_id:
        if driver_id != previous_driver_id:
            await _publish_safely(sink, driver_room(driver_id), ORDER_ASSIGNED, data, trace_id)
        await _publish_safely(sink, driver_room(driver_id), ORDER_UPDATE, data, trace_id)


async def notify_qr_verified(
    sink: NotificationSink,
    order: dict,
    verified_by: str,
    trace_id: Optional[str] = None,
):
    data = {
        "order_id": order["id"],
        "order_number": order["order_number"],
        "status": order["status"],
        "progress": order["progress"],
        "verified_by": verified_by,
        "verified_at": order["qr_verified_at"].isoformat(),
    }
    await _publish_safely(sink, ADMIN_ROOM, QR_VERIFIED, data, trace_id)
    await _publish_safely(
        sink,
        customer_room(order["customer_id"]),
        ORDER_PICKED_UP,
        {**data, "message": f"Your items for order {order['order_number']} were picked up"},
        trace_id,
    )
