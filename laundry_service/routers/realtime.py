import json
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from laundry_service.auth import resolve_token, linked_driver_ids
from laundry_service.events import ADMIN_ROOM, customer_room, driver_room
from laundry_service.models import Role
from laundry_service.schemas import AuthUser
from laundry_service.ws_manager import manager

router = APIRouter(tags=["realtime"])
logger = logging.getLogger("laundry-service.ws")

POLICY_VIOLATION = 1008


async def can_join(user: AuthUser, room: str) -> bool:
    """Admins join anything; everyone else only their own room."""
    if user.role == Role.admin:
        return True
    if room == ADMIN_ROOM:
        return False
    if user.role == Role.customer:
        return room == customer_room(user.id)
    if user.role == Role.driver:
        return room in {driver_room(i) for i in await linked_driver_ids(user)}
    return False


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: Optional[str] = None):
    user = await resolve_token(token)
    if user is None:
        logger.info("[WS] rejected connection without a valid token")
        await websocket.close(code=POLICY_VIOLATION)
        return

    await manager.connect(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Malformed message"})
                continue
            if not isinstance(message, dict):
                await websocket.send_json({"type": "error", "message": "Malformed message"})
                continue

            action = message.get("action")
            room = message.get("room")

            if action == "ping":
                await websocket.send_json({"type": "pong"})
            elif action == "join" and isinstance(room, str):
                if await can_join(user, room):
                    await manager.join(websocket, room)
                    await websocket.send_json({"type": "joined", "room": room})
                else:
                    logger.info(f"[WS] {user.id} ({user.role.value}) denied room {room}")
                    await websocket.send_json({"type": "error", "message": "Access denied", "room": room})
            elif action == "leave" and isinstance(room, str):
                await manager.leave(websocket, room)
                await websocket.send_json({"type": "left", "room": room})
            else:
                await websocket.send_json({"type": "error", "message": "Unknown action"})
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(websocket)
