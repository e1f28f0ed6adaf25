from fastapi import WebSocket
from typing import Dict, Callable, Awaitable, Any
from app.websockets.connection import AuthenticatedWebSocket
from app.config import logger
from pubsub import pub


class WebSocketManager:
    """Live channel for notifications, keyed by user id."""

    def __init__(self):
        self.active_connections: Dict[str, AuthenticatedWebSocket] = {}
        pub.subscribe(self.on_user_authenticated, "user_authenticated")

    def on_user_authenticated(self, user_id: str, connection: AuthenticatedWebSocket):
        self.register_connection(user_id, connection)

    def register_connection(self, user_id: str, connection: AuthenticatedWebSocket):
        if user_id in self.active_connections:
            logger.info(f"Replacing existing WebSocket connection for user {user_id}")
        self.active_connections[user_id] = connection
        logger.info(f"User {user_id} connected to WebSocket")

    def disconnect(self, user_id: str, connection: AuthenticatedWebSocket = None):
        current = self.active_connections.get(user_id)
        if current is not None and (connection is None or current is connection):
            self.active_connections.pop(user_id, None)
            logger.info(f"User {user_id} disconnected")

    async def send_message(self, recipient_id: str, message: Dict[str, Any]) -> bool:
        """Push ``message`` to ``recipient_id`` if the user is online."""
        connection = self.active_connections.get(recipient_id)
        if connection is None:
            logger.info(f"User {recipient_id} not connected, notification kept for later")
            return False
        await connection.send_json(message)
        logger.info(f"Sent message to user {recipient_id}")
        return True

    async def handle_connection(
        self,
        websocket: WebSocket,
        message_handler: Callable[[Dict[str, Any], AuthenticatedWebSocket], Awaitable[None]],
    ):
        connection = AuthenticatedWebSocket(websocket)
        await connection.accept()
        try:
            await connection.handle_messages(message_handler)
        finally:
            if connection.authenticated and connection.user_id:
                self.disconnect(connection.user_id, connection)
            await connection.close()


# Global WebSocket manager instance
ws_manager = WebSocketManager()
