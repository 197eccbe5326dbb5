"""
WebSocket endpoints: live event creation and listing updates
"""

import asyncio
import json
import logging
from typing import Dict, List, Optional
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends

from app.core.config import settings
from app.core.errors import FieldValidationError, TransientStoreError
from app.services.creation_session import CreationSession
from app.services.event_submitter import CreationContext
from app.services.repositories import EventStore, get_event_store
from app.utils.security import is_admin_token

logger = logging.getLogger(__name__)

LISTING_ROOM = "events"

class WebSocketManager:
    """Manages WebSocket connections grouped into rooms"""

    def __init__(self):
        # room -> list of websockets
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, room: str):
        """Accept WebSocket connection and add it to a room"""
        await websocket.accept()
        self.active_connections.setdefault(room, []).append(websocket)
        logger.info(f"WebSocket joined {room}. Total connections: {len(self.active_connections[room])}")

    def disconnect(self, websocket: WebSocket, room: str):
        """Remove WebSocket connection from a room"""
        connections = self.active_connections.get(room)
        if not connections or websocket not in connections:
            return
        connections.remove(websocket)
        logger.info(f"WebSocket left {room}. Remaining connections: {len(connections)}")
        if not connections:
            del self.active_connections[room]

    async def send_personal_message(self, message: dict, websocket: WebSocket):
        """Send message to specific WebSocket"""
        try:
            await websocket.send_text(json.dumps(message))
        except Exception as e:
            logger.error(f"Error sending personal message: {e}")

    async def broadcast(self, room: str, message: dict):
        """Broadcast message to every WebSocket in a room"""
        connections = list(self.active_connections.get(room, []))

        disconnected = []
        for websocket in connections:
            try:
                await websocket.send_text(json.dumps(message))
            except Exception as e:
                logger.error(f"Error broadcasting to websocket: {e}")
                disconnected.append(websocket)

        for websocket in disconnected:
            self.disconnect(websocket, room)

    def get_connection_count(self, room: str) -> int:
        return len(self.active_connections.get(room, []))

# Global WebSocket manager instance
websocket_manager = WebSocketManager()

router = APIRouter()

async def _drain(websocket: WebSocket, outbox: asyncio.Queue):
    """Send queued session messages in order"""
    while True:
        message = await outbox.get()
        await websocket_manager.send_personal_message(message, websocket)

async def _resolve_admin_id(store: EventStore, email: Optional[str]) -> int:
    if not email:
        return 0
    try:
        return await store.find_admin_id(email) or 0
    except TransientStoreError as e:
        logger.error(f"Error fetching admin {email}: {e}")
        return 0

@router.websocket("/events/compose")
async def compose_event(
    websocket: WebSocket,
    token: Optional[str] = None,
    email: Optional[str] = None,
    store: EventStore = Depends(get_event_store)
):
    """Drive one creation form: field edits in, gate state out"""
    if not is_admin_token(token):
        await websocket.close(code=4001, reason="Invalid admin token")
        return

    await websocket.accept()
    context = CreationContext(admin_id=await _resolve_admin_id(store, email), admin_email=email)

    outbox: asyncio.Queue = asyncio.Queue()
    session = CreationSession(
        store,
        context,
        debounce_seconds=settings.TITLE_CHECK_DEBOUNCE_SECONDS,
        on_change=lambda s: outbox.put_nowait({"type": "state", **s.snapshot()}),
    )
    sender = asyncio.create_task(_drain(websocket, outbox))
    outbox.put_nowait({"type": "state", **session.snapshot()})

    try:
        while True:
            data = await websocket.receive_text()
            try:
                client_message = json.loads(data)
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON received from WebSocket: {data}")
                outbox.put_nowait({"type": "error", "message": "Invalid JSON"})
                continue

            message_type = client_message.get("type")
            if message_type == "field":
                try:
                    session.set_field(client_message.get("name"), client_message.get("value"))
                except FieldValidationError as e:
                    outbox.put_nowait({"type": "error", "message": str(e), "field_errors": e.errors})
            elif message_type == "submit":
                result = await session.submit()
                outbox.put_nowait({"type": "submitted" if result.ok else "rejected", **result.to_dict()})
                if result.ok:
                    await websocket_manager.broadcast(LISTING_ROOM, {
                        "type": "event_created",
                        "event": result.event.to_dict(),
                    })
            elif message_type == "ping":
                outbox.put_nowait({"type": "pong", "timestamp": client_message.get("timestamp")})

    except WebSocketDisconnect:
        pass
    finally:
        session.close()
        sender.cancel()

@router.websocket("/events")
async def listing_updates(websocket: WebSocket):
    """Push event_created / event_deleted notifications to listing pages"""
    await websocket_manager.connect(websocket, LISTING_ROOM)
    try:
        while True:
            data = await websocket.receive_text()
            try:
                client_message = json.loads(data)
            except json.JSONDecodeError:
                logger.warning(f"Invalid JSON received from WebSocket: {data}")
                continue
            if client_message.get("type") == "ping":
                await websocket_manager.send_personal_message(
                    {"type": "pong", "timestamp": client_message.get("timestamp")}, websocket
                )
    except WebSocketDisconnect:
        pass
    finally:
        websocket_manager.disconnect(websocket, LISTING_ROOM)
