import io
import os
import json
import base64
import secrets
import logging
from datetime import datetime
from typing import Optional

import qrcode
from dotenv import load_dotenv

from laundry_service.database import database, row_to_dict
from laundry_service.errors import NotFound, Conflict, QRCodeAlreadyUsed
from laundry_service.events import NotificationSink, notify_qr_verified
from laundry_service.metrics import QR_VERIFICATIONS
from laundry_service.models import orders, users, OrderStatus, TrackingStep
from laundry_service.schemas import AuthUser
from laundry_service.storage import save_file
from laundry_service import tracking

load_dotenv()

logger = logging.getLogger("laundry-service.qr")

STORE_QR_IMAGES = os.getenv("STORE_QR_IMAGES", "False").lower() in ("true", "1", "yes")
QR_PREFIX = "QUICKSPIN"
PICKED_UP_PROGRESS = 50
PICKUP_READY = (OrderStatus.pending.value, OrderStatus.confirmed.value)


def generate_token(order_number: str) -> str:
    return f"{QR_PREFIX}_{order_number}_{secrets.token_hex(8)}"


def render_png(data: str) -> bytes:
    img = qrcode.make(data)
    buf = io.BytesIO()
    img.save(buf)
    return buf.getvalue()


def to_data_url(png: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(png).decode("ascii")


def render_data_url(data: str, order_number: Optional[str] = None) -> Optional[str]:
    """PNG data URL for a token. A failed render leaves the order without an image."""
    try:
        png = render_png(data)
    except Exception as e:
        logger.error(f"❌ QR code generation failed for {order_number or data}: {e}")
        return None

    if STORE_QR_IMAGES and order_number:
        try:
            save_file(f"qr-{order_number}.png", png)
        except Exception as e:
            logger.warning(f"[QR] could not archive image for {order_number}: {e}")
    return to_data_url(png)


async def verify(qr_token: str, driver: AuthUser, sink: NotificationSink) -> dict:
    """
    Confirm a physical pickup by scanning the order's QR code.

    The token works once: the update is conditional on the order not being
    verified yet, so of two concurrent scans only one gets a row back.
    """
    trace_id = driver.trace_id
    row = await database.fetch_one(orders.select().where(orders.c.qr_token == qr_token))
    order = row_to_dict(orders, row)
    if order is None:
        QR_VERIFICATIONS.labels(result="not_found").inc()
        raise NotFound("Invalid QR code or order not found")
    if order["qr_token_verified"]:
        QR_VERIFICATIONS.labels(result="already_used").inc()
        raise QRCodeAlreadyUsed()
    if order["status"] not in PICKUP_READY:
        QR_VERIFICATIONS.labels(result="rejected").inc()
        raise Conflict(f"Order cannot be picked up while {order['status']}")

    now = datetime.utcnow()
    async with database.transaction():
        claimed = await database.fetch_one(
            orders.update()
            .where(
                (orders.c.id == order["id"])
                & (orders.c.qr_token_verified.is_(False))
                & (orders.c.status.in_(PICKUP_READY))
            )
            .values(
                status=OrderStatus.picked_up.value,
                progress=PICKED_UP_PROGRESS,
                qr_token_verified=True,
                qr_verified_at=now,
                qr_verified_by=driver.id,
                version=orders.c.version + 1,
                updated_at=now,
            )
            .returning(orders.c.id)
        )
        if claimed is None:
            QR_VERIFICATIONS.labels(result="already_used").inc()
            raise QRCodeAlreadyUsed()

        await tracking.advance_step(
            order["id"],
            TrackingStep.items_collected,
            f"Items collected by driver at {now.strftime('%Y-%m-%d %H:%M')} UTC",
            now,
        )

    order.update(
        status=OrderStatus.picked_up.value,
        progress=PICKED_UP_PROGRESS,
        qr_token_verified=True,
        qr_verified_at=now,
        qr_verified_by=driver.id,
    )
    QR_VERIFICATIONS.labels(result="verified").inc()
    logger.info(f"[TRACE {trace_id}] ✅ QR code verified for order {order['order_number']} by {driver.id}")

    await notify_qr_verified(sink, order, driver.id, trace_id=trace_id)

    customer = row_to_dict(users, await database.fetch_one(users.select().where(users.c.id == order["customer_id"])))
    return {
        "success": True,
        "message": "Pickup verified successfully",
        "order": {
            "order_number": order["order_number"],
            "customer_name": customer["name"] if customer else "",
            "customer_address": customer["address"] if customer else "",
            "customer_phone": customer["phone_number"] if customer else "",
            "services": [
                {"name": item["name"], "unit_price": item["unit_price"], "quantity": item["quantity"]}
                for item in json.loads(order["line_items"])
            ],
        },
    }
