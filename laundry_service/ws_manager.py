# ws_manager.py
import asyncio
import logging
from collections import defaultdict
from typing import Dict, Set

from fastapi import WebSocket

logger = logging.getLogger("laundry-service.ws")


class ConnectionManager:
    """Tracks connected sockets and the rooms each one joined."""

    def __init__(self):
        self.rooms: Dict[str, Set[WebSocket]] = defaultdict(set)
        self.active_connections: Set[WebSocket] = set()
        self.lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        async with self.lock:
            self.active_connections.add(websocket)
        logger.info(f"[WS] Client connected ({len(self.active_connections)} active)")

    async def join(self, websocket: WebSocket, room: str):
        async with self.lock:
            self.rooms[room].add(websocket)
        logger.info(f"[WS] Client joined {room} ({len(self.rooms[room])} in room)")

    async def leave(self, websocket: WebSocket, room: str):
        async with self.lock:
            members = self.rooms.get(room)
            if members is not None:
                members.discard(websocket)
                if not members:
                    del self.rooms[room]

    async def disconnect(self, websocket: WebSocket):
        async with self.lock:
            self.active_connections.discard(websocket)
            for room in list(self.rooms):
                self.rooms[room].discard(websocket)
                if not self.rooms[room]:
                    del self.rooms[room]
        logger.info(f"[WS] Client disconnected ({len(self.active_connections)} active)")

    async def emit(self, room: str, message: dict) -> int:
        """Send JSON message to every socket in a room. Returns how many received it."""
        async with self.lock:
            targets = list(self.rooms.get(room, ()))

        dead = []
        delivered = 0
        for ws in targets:
            try:
                await ws.send_json(message)
                delivered += 1
            except Exception as e:
                logger.warning(f"[WS EMIT ERROR] {room}: {e}")
                dead.append(ws)

        # Disconnect failed sockets
        for ws in dead:
            await self.disconnect(ws)
        return delivered


manager = ConnectionManager()
