from fastapi import APIRouter, WebSocket
from typing import Dict, Any

from app.config import logger
from app.core.errors import ModerationError
from app.models.user_model import Actor
from app.routers.dependencies import get_dispatcher
from app.websockets.manager import ws_manager

router = APIRouter()


async def message_handler(message: Dict[str, Any], connection):
    """Handle authenticated messages from WebSocket clients."""
    msg_type = message.get("type")
    try:
        if msg_type == "ping":
            await connection.send_json({"type": "pong"})
        elif msg_type == "notification_read" and message.get("notification_id"):
            notification = get_dispatcher().mark_read(
                message["notification_id"], Actor(id=connection.user_id)
            )
            await connection.send_json({"type": "notification_read", "notification_id": notification["id"]})
        else:
            logger.warning(f"Unhandled WebSocket message type from user {connection.user_id}: {msg_type}")
    except ModerationError as e:
        logger.error(f"Error handling WebSocket message: {e.message}")
        await connection.send_json({"type": "error", "code": e.code, "message": e.message})


@router.websocket("")  # This will match /ws when mounted with prefix
async def websocket_endpoint_root(websocket: WebSocket):
    await ws_manager.handle_connection(websocket, message_handler)
